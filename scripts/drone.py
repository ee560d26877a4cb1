import logging
import socket
import struct
from dataclasses import dataclass
from typing import Tuple

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from errors import SerializationError, TransportError

logger = logging.getLogger(__name__)

GET_AIRDROP = 0
U64_MAX = 2 ** 64 - 1


@dataclass(frozen=True)
class DroneRequest:
    airdrop_request_amount: int
    client_public_key: Pubkey

    def serialize(self) -> bytes:
        """Variant tag (u32), amount (u64), then the 32 raw key bytes, all little-endian."""
        if not 0 <= self.airdrop_request_amount <= U64_MAX:
            raise SerializationError(
                f"Airdrop amount {self.airdrop_request_amount} does not fit in an unsigned 64-bit field"
            )
        return struct.pack("<IQ", GET_AIRDROP, self.airdrop_request_amount) + bytes(self.client_public_key)


def request_airdrop(drone_addr: Tuple[str, int], keypair: Keypair, tokens: int) -> None:
    """Ask the drone for `tokens` and return once the request is written.

    The drone credits the account asynchronously and sends nothing back;
    poll the balance to see the result.
    """
    req = DroneRequest(airdrop_request_amount=tokens, client_public_key=keypair.pubkey())
    payload = req.serialize()
    logger.debug("Airdrop request for %d tokens to %s:%d", tokens, *drone_addr)
    # TODO: bound connect and write with a timeout for unresponsive drones.
    try:
        with socket.create_connection(drone_addr) as stream:
            stream.sendall(payload)
    except OSError as e:
        raise TransportError(f"Airdrop request to {drone_addr[0]}:{drone_addr[1]} failed: {e}") from e
