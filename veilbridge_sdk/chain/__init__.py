"""
Chain access for the VeilBridge SDK.
"""
from .interfaces import L1Chain, L2Node, PrivacyWrapperContract, BridgedTokenContract
from .l1 import Web3L1Chain, Signer
from .l2_rpc import JsonRpcL2Node

__all__ = [
    "L1Chain",
    "L2Node",
    "PrivacyWrapperContract",
    "BridgedTokenContract",
    "Web3L1Chain",
    "Signer",
    "JsonRpcL2Node",
]
