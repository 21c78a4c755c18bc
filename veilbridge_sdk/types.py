"""
Context objects shared by every flow.
"""
from dataclasses import dataclass, field
from typing import Optional

from .chain.interfaces import BridgedTokenContract, L1Chain, L2Node, PrivacyWrapperContract
from .chain.l1 import Signer, Web3L1Chain
from .chain.l2_rpc import JsonRpcL2Node
from .config import BridgeSettings
from .crypto import FieldHasher, KeccakFieldHasher
from .storage import PendingDepositLedger, PositionBook, SecretStore


@dataclass(frozen=True)
class L1Addresses:
    """Deployed L1 contracts"""
    portal: str
    token_portal: str
    token: str
    outbox: str

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "L1Addresses":
        return cls(
            portal=settings.portal,
            token_portal=settings.token_portal,
            token=settings.token,
            outbox=settings.outbox,
        )


@dataclass
class L1Context:
    chain: L1Chain
    addresses: L1Addresses

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        user_key: Optional[str] = None,
        user_signer: Optional[Signer] = None,
        relayer_key: Optional[str] = None,
        relayer_signer: Optional[Signer] = None,
    ) -> "L1Context":
        """
        Connect to the L1 endpoint of a deployment.

        Raises:
            ValueError: If an account is missing or the user and relayer are the same
        """
        chain = Web3L1Chain(
            settings.l1_rpc_url,
            user_key=user_key,
            user_signer=user_signer,
            relayer_key=relayer_key,
            relayer_signer=relayer_signer,
        )
        return cls(chain=chain, addresses=L1Addresses.from_settings(settings))


@dataclass
class L2Context:
    """L2 node, the user's wallet address and typed contract clients"""
    node: L2Node
    wallet_address: str
    contract: Optional[PrivacyWrapperContract] = None
    bridged_token: Optional[BridgedTokenContract] = None
    hasher: FieldHasher = field(default_factory=KeccakFieldHasher)

    @classmethod
    def from_settings(
        cls,
        settings: BridgeSettings,
        wallet_address: str,
        contract: Optional[PrivacyWrapperContract] = None,
        bridged_token: Optional[BridgedTokenContract] = None,
    ) -> "L2Context":
        """Connect to the L2 node of a deployment; contract clients come from the wallet."""
        return cls(
            node=JsonRpcL2Node(settings.l2_node_url),
            wallet_address=wallet_address,
            contract=contract,
            bridged_token=bridged_token,
        )


@dataclass
class FlowStores:
    secrets: SecretStore
    pending_deposits: PendingDepositLedger
    positions: PositionBook

    @classmethod
    def open(cls, home: Optional[str] = None, passphrase: Optional[str] = None) -> "FlowStores":
        """
        Open the default stores, under ``home`` when given.

        Args:
            home: Directory overriding ``VEILBRIDGE_HOME``
            passphrase: Extra key material for secret encryption
        """
        def path(name: str) -> Optional[str]:
            return f"{home}/{name}" if home else None

        return cls(
            secrets=SecretStore(path("secrets.json"), passphrase=passphrase),
            pending_deposits=PendingDepositLedger(path("pending_deposits.json")),
            positions=PositionBook(path("positions.json")),
        )

    @classmethod
    def from_settings(cls, settings: BridgeSettings, passphrase: Optional[str] = None) -> "FlowStores":
        return cls.open(settings.home, passphrase)
