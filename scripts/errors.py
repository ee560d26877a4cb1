"""
Wallet exceptions
"""


class WalletError(Exception):
    """Base exception for wallet failures."""
    pass


class CommandNotRecognized(WalletError):
    """No subcommand, or one the wallet does not know."""
    pass


class BadParameter(WalletError):
    """A command parameter failed validation."""
    pass


class TransportError(WalletError):
    """Network or protocol failure talking to the leader or the drone."""
    pass


class SerializationError(TransportError):
    """A request could not be encoded for the wire."""
    pass


class AccountNotFoundError(WalletError):
    """The leader has no record of the account."""

    def __init__(self, pubkey):
        super().__init__(f"No account record for {pubkey}")
        self.pubkey = pubkey
