import logging
import os
import sys
import time
from typing import Optional, Sequence

from commands import Address, AirDrop, Balance, Confirm, Pay, WalletConfig, parse_args
from drone import request_airdrop
from errors import AccountNotFoundError, TransportError, WalletError
from thin_client import ThinClient, mk_client

logger = logging.getLogger(__name__)

# Airdrops are not acknowledged; give the leader a moment before polling.
AIRDROP_SETTLE_SECONDS = 0.1


def process_command(config: WalletConfig, client: ThinClient) -> None:
    command = config.command
    pubkey = config.keypair.pubkey()

    if isinstance(command, Address):
        print(pubkey)

    elif isinstance(command, Balance):
        print("Balance requested...")
        try:
            balance = client.get_balance(pubkey)
        except AccountNotFoundError:
            print("No account found! Request an airdrop to get started.")
        except TransportError as e:
            print(f"An error occurred: {e}")
        else:
            print(f"Your balance is: {balance}")

    elif isinstance(command, AirDrop):
        print("Airdrop requested...")
        print(f"Airdropping {command.tokens} tokens")
        request_airdrop(config.drone_addr, config.keypair, command.tokens)
        time.sleep(AIRDROP_SETTLE_SECONDS)
        # Unlike the balance command, a failure here is fatal.
        print(f"Your balance is: {client.get_balance(pubkey)}")

    elif isinstance(command, Pay):
        last_id = client.get_last_id()
        sig = client.transfer(command.tokens, config.keypair, command.to, last_id)
        print(sig)

    elif isinstance(command, Confirm):
        print("Confirmed" if client.check_signature(command.signature) else "Not found")

    else:
        raise TypeError(f"Unknown command: {command!r}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("SOLANA_WALLET_LOG", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = parse_args(argv)
        with mk_client(config.leader) as client:
            process_command(config, client)
    except WalletError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
