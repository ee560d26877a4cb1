"""
Thin client for a leader.

Queries (balance, latest blockhash, signature status) go over one RPC
channel with a short read timeout; transactions go over a second channel
with none. Each wallet invocation builds its own pair and closes both
before exit.
"""

import logging
from typing import Any

import httpx
from solana.exceptions import SolanaExceptionBase, SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.core import RPCException
from solders.errors import SerdeJSONError
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from common import QUERY_TIMEOUT, NodeInfo
from errors import AccountNotFoundError, SerializationError, TransportError

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (
    SolanaRpcException, RPCException, SerdeJSONError, httpx.HTTPError, OSError, ValueError,
)


def _describe(e: Exception) -> str:
    # solana-py keeps its message in `error_msg` and leaves str(e) empty.
    detail = e.error_msg if isinstance(e, SolanaExceptionBase) else str(e)
    if not detail and e.__cause__ is not None:
        detail = repr(e.__cause__)
    return detail or type(e).__name__


def _value(resp: Any) -> Any:
    # RPC error payloads parse into objects without a `value` field.
    try:
        return resp.value
    except AttributeError:
        raise TransportError(f"Unexpected response from leader: {resp}") from None


def _close_session(client: Client) -> None:
    session = getattr(getattr(client, "_provider", None), "session", None)
    if session is not None:
        session.close()


class ThinClient:
    def __init__(self, requests_client: Client, transactions_client: Client):
        self.requests_client = requests_client
        self.transactions_client = transactions_client

    def __enter__(self) -> "ThinClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        try:
            _close_session(self.requests_client)
        finally:
            _close_session(self.transactions_client)

    def get_balance(self, pubkey: Pubkey) -> int:
        """Return the lamports held by `pubkey`.

        Raises AccountNotFoundError when the leader answers that it has no
        record of the account, and TransportError for anything else that
        goes wrong. A single call does not retry.
        """
        logger.debug("get_balance %s", pubkey)
        try:
            resp = self.requests_client.get_account_info(pubkey)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"Balance query failed: {_describe(e)}") from e
        account = _value(resp)
        if account is None:
            raise AccountNotFoundError(pubkey)
        return account.lamports

    def get_last_id(self) -> Hash:
        logger.debug("get_last_id")
        try:
            resp = self.requests_client.get_latest_blockhash()
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"Latest blockhash query failed: {_describe(e)}") from e
        return _value(resp).blockhash

    def transfer(self, tokens: int, keypair: Keypair, to: Pubkey, last_id: Hash) -> Signature:
        """Sign a transfer of `tokens` from `keypair` to `to` and submit it."""
        try:
            ix = transfer(TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=to, lamports=tokens))
            msg = Message.new_with_blockhash([ix], payer=keypair.pubkey(), blockhash=last_id)
            tx = Transaction([keypair], msg, last_id)
        except (OverflowError, TypeError, ValueError) as e:
            raise SerializationError(f"Cannot build a transfer of {tokens} tokens: {e}") from e

        logger.debug("transfer %d tokens %s -> %s", tokens, keypair.pubkey(), to)
        try:
            resp = self.transactions_client.send_transaction(tx)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(f"Transaction submission failed: {_describe(e)}") from e
        return _value(resp)

    def check_signature(self, signature: Signature) -> bool:
        logger.debug("check_signature %s", signature)
        try:
            resp = self.requests_client.get_signature_statuses(
                [signature], search_transaction_history=True
            )
            statuses = _value(resp)
        except (TransportError, *_TRANSPORT_ERRORS) as e:
            logger.warning("Signature lookup for %s failed: %s", signature, _describe(e))
            return False
        status = statuses[0] if statuses else None
        return status is not None and getattr(status, "err", None) is None


def mk_client(node: NodeInfo) -> ThinClient:
    requests_client = Client(node.rpu, timeout=QUERY_TIMEOUT)
    transactions_client = Client(node.tpu, timeout=None)
    return ThinClient(requests_client, transactions_client)
