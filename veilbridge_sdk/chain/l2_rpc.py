"""
L2 node client over JSON-RPC.
"""
import itertools
import logging
from typing import Any, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import validate_rpc_url
from ..crypto import to_hex32
from ..exceptions import RpcError
from ..models import L2ToL1MembershipWitness
from .interfaces import L2Node

logger = logging.getLogger(__name__)


def _to_int(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith(("0x", "0X")) else int(value)


class JsonRpcL2Node(L2Node):
    """
    Minimal L2 node client for the calls the flows need.

    HTTP-level failures (5xx, dropped connections) are retried by the
    session; JSON-RPC error objects are raised as :class:`RpcError`.
    """

    def __init__(self, node_url: str, retry_count: int = 3, timeout: int = 30):
        validate_rpc_url("node_url", node_url)
        self.node_url = node_url
        self.timeout = timeout
        self._ids = itertools.count(1)

        self.session = requests.Session()
        retries = Retry(
            total=retry_count,
            backoff_factor=0.5,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
            connect=retry_count,
            read=retry_count,
        )
        self.session.mount("http://", HTTPAdapter(max_retries=retries))
        self.session.mount("https://", HTTPAdapter(max_retries=retries))

    def _call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        response = self.session.post(self.node_url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        body = response.json()
        error = body.get("error")
        if error:
            raise RpcError(method, error.get("code"), error.get("message", "unknown error"))
        return body.get("result")

    def get_block_number(self) -> int:
        return _to_int(self._call("node_getBlockNumber", []))

    def get_l1_to_l2_message_block(self, message_leaf: str) -> Optional[int]:
        result = self._call("node_getL1ToL2MessageBlock", [to_hex32(message_leaf)])
        return None if result is None else _to_int(result)

    def get_l1_to_l2_membership_witness(self, block_number: int, message_leaf: str) -> Optional[List[Any]]:
        """
        Membership witness of an L1→L2 message.

        Returns:
            ``[leaf_index, sibling_path]`` or None when the message is not in the tree yet
        """
        result = self._call(
            "node_getL1ToL2MessageMembershipWitness", [block_number, to_hex32(message_leaf)]
        )
        if not result:
            return None
        return [_to_int(result[0])] + list(result[1:])

    def get_l2_to_l1_membership_witness(
        self,
        block_number: int,
        message_hash: int,
    ) -> Optional[L2ToL1MembershipWitness]:
        result = self._call(
            "node_getL2ToL1MessageMembershipWitness", [block_number, to_hex32(message_hash)]
        )
        if not result:
            return None
        if isinstance(result, dict):
            return L2ToL1MembershipWitness(
                leaf_index=_to_int(result["leafIndex"]),
                sibling_path=list(result.get("siblingPath", [])),
                root=result.get("root"),
            )
        return L2ToL1MembershipWitness(leaf_index=_to_int(result[0]), sibling_path=list(result[1]))
