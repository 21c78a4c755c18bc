from .doubles import (
    USER_ADDRESS, L2_WALLET, L2_CONTRACT, ADDRESSES, L1_TIMESTAMP, BRIDGE_MESSAGE_KEY,
    DEPOSIT_MESSAGE_LEAF, WITHDRAW_MESSAGE_KEY, SIBLING_PATH,
    FakeL1Chain, FakeL2Node, NoWitnessL2Node, FakeWrapperContract, FakeBridgedToken,
    RecordingObserver, FakeClock, make_pending,
)

__all__ = [
    "USER_ADDRESS",
    "L2_WALLET",
    "L2_CONTRACT",
    "ADDRESSES",
    "L1_TIMESTAMP",
    "BRIDGE_MESSAGE_KEY",
    "DEPOSIT_MESSAGE_LEAF",
    "WITHDRAW_MESSAGE_KEY",
    "SIBLING_PATH",
    "FakeL1Chain",
    "FakeL2Node",
    "NoWitnessL2Node",
    "FakeWrapperContract",
    "FakeBridgedToken",
    "RecordingObserver",
    "FakeClock",
    "make_pending",
]
