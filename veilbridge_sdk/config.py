"""
Protocol constants and runtime settings for the VeilBridge SDK.

Settings are read from ``VEILBRIDGE_*`` environment variables so the same
code runs against a local devnet and a hosted deployment without changes.
"""
import os
import logging
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Fee charged by the L2 wrapper contract: amount * FEE_BPS // FEE_DENOMINATOR
FEE_BPS = 10
FEE_DENOMINATOR = 10_000
MIN_DEPOSIT = 100

# Deadline offsets accepted by the L1 portal (seconds)
MIN_DEADLINE_OFFSET = 30 * 60
MAX_DEADLINE_OFFSET = 24 * 60 * 60
DEFAULT_DEADLINE_OFFSET = 60 * 60

# Token decimals of the bridged stablecoin
DEFAULT_TOKEN_DECIMALS = 6

DEFAULT_HOME = "~/.veilbridge"


@dataclass(frozen=True)
class WaitSettings:
    """Bounds for one polling loop, all values in seconds."""
    max_wait: float
    poll_interval: float
    mine_interval: float = 10.0


# L2→L1 proof lookup and checkpoint finality
PROOF_WAIT = WaitSettings(max_wait=180.0, poll_interval=5.0, mine_interval=10.0)
CHECKPOINT_WAIT = WaitSettings(max_wait=180.0, poll_interval=5.0, mine_interval=10.0)
# L1→L2 consumability after a deposit execution
DEPOSIT_MESSAGE_WAIT = WaitSettings(max_wait=300.0, poll_interval=5.0, mine_interval=10.0)
# L1→L2 consumability for bridge and token claims
CLAIM_MESSAGE_WAIT = WaitSettings(max_wait=120.0, poll_interval=5.0, mine_interval=20.0)
# Single quick check used by the background proof poller
PROOF_STATUS_CHECK = WaitSettings(max_wait=5.0, poll_interval=5.0, mine_interval=10.0)

PROOF_POLLER_INTERVAL = 30.0

# Retry executor backoff (seconds)
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 10.0
MESSAGE_RETRY_BASE_DELAY = 30.0
MESSAGE_RETRY_MAX_DELAY = 60.0
DEFAULT_MAX_RETRIES = 3


def validate_rpc_url(name: str, url: str) -> None:
    """
    Reject plain-http endpoints that are not on the local machine.

    Args:
        name: Setting name used in the error message
        url: Endpoint URL to check

    Raises:
        ValueError: If the URL does not use https and is not localhost
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.netloc.split(':')[0] if parsed.netloc else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ValueError(f"{name} must use https:// for security (got: {parsed.scheme}://)")


def home_dir() -> Path:
    """Directory holding the local ledger and secret files."""
    return Path(os.path.expanduser(os.environ.get("VEILBRIDGE_HOME", DEFAULT_HOME)))


class BridgeSettings(BaseModel):
    """Endpoints and contract addresses for one deployment"""
    l1_rpc_url: str = Field(..., alias="l1RpcUrl")
    l2_node_url: str = Field(..., alias="l2NodeUrl")
    portal: str
    token_portal: str = Field(..., alias="tokenPortal")
    token: str
    outbox: str
    poll_interval: float = Field(5.0, alias="pollInterval")
    home: Optional[str] = None

    class Config:
        populate_by_name = True

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "BridgeSettings":
        """
        Build settings from ``VEILBRIDGE_*`` environment variables.

        Args:
            overrides: Values that take precedence over the environment

        Returns:
            Validated settings

        Raises:
            ValueError: If a required variable is missing or an RPC URL is insecure
        """
        env = {
            "l1_rpc_url": os.environ.get("VEILBRIDGE_L1_RPC_URL", "http://localhost:8545"),
            "l2_node_url": os.environ.get("VEILBRIDGE_L2_NODE_URL", "http://localhost:8080"),
            "portal": os.environ.get("VEILBRIDGE_PORTAL"),
            "token_portal": os.environ.get("VEILBRIDGE_TOKEN_PORTAL"),
            "token": os.environ.get("VEILBRIDGE_TOKEN"),
            "outbox": os.environ.get("VEILBRIDGE_OUTBOX"),
            "poll_interval": float(os.environ.get("VEILBRIDGE_POLL_INTERVAL", "5")),
            "home": os.environ.get("VEILBRIDGE_HOME"),
        }
        if overrides:
            env.update(overrides)

        missing = [k for k in ("portal", "token_portal", "token", "outbox") if not env.get(k)]
        if missing:
            raise ValueError(
                "Missing deployment settings: "
                + ", ".join(f"VEILBRIDGE_{k.upper()}" for k in missing)
            )

        validate_rpc_url("l1_rpc_url", env["l1_rpc_url"])
        validate_rpc_url("l2_node_url", env["l2_node_url"])
        return cls.model_validate(env)
