import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature

from common import (
    DEFAULT_KEYPAIR,
    DEFAULT_RPC,
    NodeInfo,
    decode_pubkey,
    decode_signature,
    drone_address,
    load_keypair,
    read_leader,
)
from errors import BadParameter, CommandNotRecognized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    pass


@dataclass(frozen=True)
class Balance:
    pass


@dataclass(frozen=True)
class AirDrop:
    tokens: int


@dataclass(frozen=True)
class Pay:
    tokens: int
    to: Pubkey


@dataclass(frozen=True)
class Confirm:
    signature: Signature


Command = Union[Address, Balance, AirDrop, Pay, Confirm]


@dataclass(frozen=True)
class WalletConfig:
    leader: NodeInfo
    keypair: Keypair
    drone_addr: Tuple[str, int]
    command: Command


ACTIONS = (
    ("address", "Get your public key"),
    ("balance", "Get your account balance"),
    ("airdrop", "Request a batch of tokens"),
    ("pay", "Send tokens to a public key"),
    ("confirm", "Confirm your last payment by signature"),
)


def display_actions() -> None:
    print()
    print("Commands:")
    for name, about in ACTIONS:
        print(f"  {name:<9} {about}")
    print()


def parse_tokens(text: Any) -> int:
    # Sign and range are left for the leader and the drone to judge.
    try:
        return int(text)
    except (TypeError, ValueError) as e:
        raise BadParameter(f"Invalid number of tokens: {text!r}") from e


def parse_command(name: Optional[str], params: Mapping[str, Any], owner: Pubkey) -> Command:
    """Validate a subcommand and its textual parameters into a Command.

    `owner` is the caller's public key, used as the recipient when `pay`
    is given no `to`.
    """
    if name is None:
        display_actions()
        raise CommandNotRecognized("no subcommand given")

    if name == "address":
        return Address()
    if name == "balance":
        return Balance()
    if name == "airdrop":
        return AirDrop(parse_tokens(params.get("tokens")))
    if name == "pay":
        to_text = params.get("to")
        if to_text is None:
            to = owner
        else:
            try:
                to = decode_pubkey(to_text)
            except BadParameter:
                display_actions()
                raise
        return Pay(parse_tokens(params.get("tokens")), to)
    if name == "confirm":
        try:
            return Confirm(decode_signature(params.get("signature") or ""))
        except BadParameter:
            display_actions()
            raise

    display_actions()
    raise CommandNotRecognized(f"unknown subcommand: {name}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solana-wallet",
        description="Query your balance, request an airdrop, send and confirm payments",
        exit_on_error=False,
    )
    parser.add_argument("-l", "--leader", metavar="PATH", help="/path/to/leader.json")
    parser.add_argument(
        "-k", "--keypair", metavar="PATH", default=DEFAULT_KEYPAIR, help="/path/to/id.json"
    )
    sub = parser.add_subparsers(dest="command")

    airdrop = sub.add_parser("airdrop", help="Request a batch of tokens")
    airdrop.add_argument(
        "--tokens", metavar="NUMBER", required=True, help="The number of tokens to request"
    )

    pay = sub.add_parser("pay", help="Send a payment")
    pay.add_argument("--tokens", metavar="NUMBER", required=True, help="The number of tokens to send")
    pay.add_argument("--to", metavar="PUBKEY", help="The pubkey of recipient (default: yourself)")

    confirm = sub.add_parser("confirm", help="Confirm your payment by signature")
    confirm.add_argument("signature", metavar="SIGNATURE", help="The transaction signature to confirm")

    sub.add_parser("balance", help="Get your balance")
    sub.add_parser("address", help="Get your public key")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> WalletConfig:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except argparse.ArgumentError as e:
        if e.argument_name == "command":
            display_actions()
            raise CommandNotRecognized(str(e)) from e
        parser.error(str(e))

    try:
        leader = read_leader(args.leader) if args.leader else NodeInfo.new_leader(DEFAULT_RPC)
        drone_addr = drone_address(leader)
    except ValueError as e:
        print(f"Failed to load leader: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        keypair = load_keypair(args.keypair)
    except (OSError, ValueError) as e:
        print(f"Failed to load keypair: {e}", file=sys.stderr)
        sys.exit(1)

    command = parse_command(args.command, vars(args), keypair.pubkey())
    logger.debug("Parsed %s against leader %s, drone %s:%d", command, leader.rpu, *drone_addr)
    return WalletConfig(leader=leader, keypair=keypair, drone_addr=drone_addr, command=command)
