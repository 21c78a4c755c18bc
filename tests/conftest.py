"""
Pytest fixtures for the VeilBridge SDK tests.
"""
import time

import pytest

from veilbridge_sdk._rate_limited_log import reset_rate_limits
from veilbridge_sdk.messaging import proof as proof_module
from veilbridge_sdk.types import FlowStores, L1Context, L2Context
from tests.test_helpers import (
    ADDRESSES, L2_WALLET, FakeBridgedToken, FakeClock, FakeL1Chain, FakeL2Node, FakeWrapperContract,
    RecordingObserver,
)


# Make time.sleep instantaneous so waits and retries don't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Keep every store out of the real home directory."""
    monkeypatch.setenv("VEILBRIDGE_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("VEILBRIDGE_SECRET_PASSPHRASE", raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_time(monkeypatch, clock):
    """Drive the message waits from a fake clock."""
    monkeypatch.setattr(proof_module, "time", clock)
    return clock


@pytest.fixture
def l1_chain():
    return FakeL1Chain()


@pytest.fixture
def l2_node():
    return FakeL2Node()


@pytest.fixture
def wrapper():
    return FakeWrapperContract()


@pytest.fixture
def bridged_token():
    return FakeBridgedToken()


@pytest.fixture
def l1(l1_chain):
    return L1Context(chain=l1_chain, addresses=ADDRESSES)


@pytest.fixture
def l2(l2_node, wrapper, bridged_token):
    return L2Context(node=l2_node, wallet_address=L2_WALLET, contract=wrapper, bridged_token=bridged_token)


@pytest.fixture
def stores(tmp_path):
    return FlowStores.open(str(tmp_path / "stores"), passphrase="test-passphrase")


@pytest.fixture
def observer():
    return RecordingObserver()
