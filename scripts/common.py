import json
import logging
import os
from dataclasses import dataclass
from typing import Tuple
from urllib.parse import urlparse

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from errors import BadParameter

logger = logging.getLogger(__name__)

DEFAULT_RPC = os.getenv("SOLANA_RPC_URL") or "http://solana-validator:8899"
DEFAULT_KEYPAIR = os.getenv("SOLANA_KEYPAIR") or "~/.config/solana/id.json"

# The drone listens next to the leader's transaction endpoint.
DRONE_PORT = 9900

# Applies to the query channel only.
QUERY_TIMEOUT = 1.0

PUBKEY_LENGTH = 32
SIGNATURE_LENGTH = 64


@dataclass(frozen=True)
class NodeInfo:
    """Endpoints of a leader: `rpu` answers queries, `tpu` accepts transactions."""

    rpu: str
    tpu: str

    @classmethod
    def new_leader(cls, url: str) -> "NodeInfo":
        return cls(rpu=url, tpu=url)


def _endpoint_url(addr: str) -> str:
    addr = addr.strip()
    if "://" in addr:
        return addr
    return f"http://{addr}"


def read_leader(path: str) -> NodeInfo:
    path = os.path.expanduser(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except OSError as e:
        raise ValueError(f"file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"failed to parse {path}") from e

    try:
        contact_info = data["node_info"]["contact_info"]
        rpu, tpu = contact_info["rpu"], contact_info["tpu"]
    except (KeyError, TypeError) as e:
        raise ValueError(f"{path} has no node_info.contact_info rpu/tpu addresses") from e
    node = NodeInfo(rpu=_endpoint_url(rpu), tpu=_endpoint_url(tpu))
    logger.debug("Leader from %s: rpu=%s tpu=%s", path, node.rpu, node.tpu)
    return node


def drone_address(node: NodeInfo) -> Tuple[str, int]:
    host = urlparse(node.tpu).hostname
    if not host:
        raise ValueError(f"Leader transaction address has no host: {node.tpu}")
    return host, DRONE_PORT


def load_keypair(path: str = DEFAULT_KEYPAIR) -> Keypair:
    path = os.path.expanduser(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f"Keypair not found: {path}")
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict) and "secretKey" in data:
        data = data["secretKey"]
    if not isinstance(data, list):
        raise ValueError("Unsupported keypair file format, expected a JSON byte array or a secretKey field")
    try:
        secret = bytes(data)
    except TypeError as e:
        raise ValueError("Keypair file must hold integers in 0..255") from e
    if len(secret) == 64:
        return Keypair.from_bytes(secret)
    if len(secret) == 32:
        return Keypair.from_seed(secret)
    raise ValueError(f"Unexpected key file length: {len(secret)} (expected 32 or 64 bytes)")


def _decode_exact(text: str, length: int, what: str) -> bytes:
    try:
        raw = base58.b58decode(text)
    except ValueError as e:
        raise BadParameter(f"Invalid {what}: not base58") from e
    if len(raw) != length:
        raise BadParameter(f"Invalid {what}: decoded to {len(raw)} bytes, expected {length}")
    return raw


def decode_pubkey(text: str) -> Pubkey:
    return Pubkey.from_bytes(_decode_exact(text, PUBKEY_LENGTH, "public key"))


def decode_signature(text: str) -> Signature:
    return Signature.from_bytes(_decode_exact(text, SIGNATURE_LENGTH, "signature"))
