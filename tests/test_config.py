"""
Tests for settings loading and URL validation.
"""
import pytest

from veilbridge_sdk.chain import JsonRpcL2Node, Web3L1Chain
from veilbridge_sdk.config import BridgeSettings, home_dir, validate_rpc_url
from veilbridge_sdk.types import FlowStores, L1Addresses, L1Context, L2Context

DEPLOYMENT_ENV = {
    "VEILBRIDGE_PORTAL": "0x2121212121212121212121212121212121212121",
    "VEILBRIDGE_TOKEN_PORTAL": "0x2222222222222222222222222222222222222222",
    "VEILBRIDGE_TOKEN": "0x2323232323232323232323232323232323232323",
    "VEILBRIDGE_OUTBOX": "0x2424242424242424242424242424242424242424",
}


@pytest.fixture
def deployment_env(monkeypatch):
    for name, value in DEPLOYMENT_ENV.items():
        monkeypatch.setenv(name, value)


@pytest.mark.parametrize("url", [
    "https://rpc.example.com",
    "http://localhost:8545",
    "http://127.0.0.1:8080",
])
def test_accepted_urls(url):
    validate_rpc_url("rpc_url", url)


@pytest.mark.parametrize("url", ["http://rpc.example.com", "ftp://rpc.example.com"])
def test_rejected_urls(url):
    with pytest.raises(ValueError, match="rpc_url must use https://"):
        validate_rpc_url("rpc_url", url)


def test_home_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("VEILBRIDGE_HOME", str(tmp_path / "vb"))
    assert home_dir() == tmp_path / "vb"


def test_settings_from_env(deployment_env, monkeypatch):
    monkeypatch.setenv("VEILBRIDGE_POLL_INTERVAL", "2.5")

    settings = BridgeSettings.from_env()

    assert settings.l1_rpc_url == "http://localhost:8545"
    assert settings.token_portal == DEPLOYMENT_ENV["VEILBRIDGE_TOKEN_PORTAL"]
    assert settings.poll_interval == 2.5


def test_overrides_take_precedence(deployment_env):
    settings = BridgeSettings.from_env({"l2_node_url": "https://node.example.com"})
    assert settings.l2_node_url == "https://node.example.com"


def test_missing_addresses_are_listed(monkeypatch):
    monkeypatch.setenv("VEILBRIDGE_PORTAL", DEPLOYMENT_ENV["VEILBRIDGE_PORTAL"])

    with pytest.raises(ValueError) as exc_info:
        BridgeSettings.from_env()

    message = str(exc_info.value)
    assert "VEILBRIDGE_TOKEN_PORTAL" in message
    assert "VEILBRIDGE_OUTBOX" in message
    assert "VEILBRIDGE_PORTAL," not in message


def test_insecure_remote_rpc_rejected(deployment_env, monkeypatch):
    monkeypatch.setenv("VEILBRIDGE_L1_RPC_URL", "http://rpc.example.com")
    with pytest.raises(ValueError, match="https"):
        BridgeSettings.from_env()


def test_camel_case_aliases():
    settings = BridgeSettings.model_validate({
        "l1RpcUrl": "https://l1.example.com",
        "l2NodeUrl": "https://l2.example.com",
        "portal": "0x01",
        "tokenPortal": "0x02",
        "token": "0x03",
        "outbox": "0x04",
    })
    assert settings.token_portal == "0x02"
    assert settings.poll_interval == 5.0


class TestContextsFromSettings:
    USER_KEY = "0x" + "11" * 32
    RELAYER_KEY = "0x" + "22" * 32

    def test_l1_context(self, deployment_env):
        l1 = L1Context.from_settings(BridgeSettings.from_env(), user_key=self.USER_KEY, relayer_key=self.RELAYER_KEY)

        assert isinstance(l1.chain, Web3L1Chain)
        assert l1.chain.rpc_url == "http://localhost:8545"
        assert l1.addresses == L1Addresses(
            portal=DEPLOYMENT_ENV["VEILBRIDGE_PORTAL"],
            token_portal=DEPLOYMENT_ENV["VEILBRIDGE_TOKEN_PORTAL"],
            token=DEPLOYMENT_ENV["VEILBRIDGE_TOKEN"],
            outbox=DEPLOYMENT_ENV["VEILBRIDGE_OUTBOX"],
        )

    def test_l1_context_needs_a_relayer(self, deployment_env):
        with pytest.raises(ValueError, match="relayer"):
            L1Context.from_settings(BridgeSettings.from_env(), user_key=self.USER_KEY)

    def test_l2_context(self, deployment_env):
        l2 = L2Context.from_settings(BridgeSettings.from_env(), wallet_address="0x" + "0a" * 32)

        assert isinstance(l2.node, JsonRpcL2Node)
        assert l2.node.node_url == "http://localhost:8080"
        assert l2.contract is None

    def test_stores_follow_home(self, deployment_env, tmp_path):
        settings = BridgeSettings.from_env({"home": str(tmp_path / "deployment")})

        stores = FlowStores.from_settings(settings, passphrase="pass")

        assert stores.positions.list() == []
        assert (tmp_path / "deployment" / "positions.json").exists()
