"""
Exception hierarchy for the fortune cookie client.
"""
from typing import Optional


class FortuneCookieError(Exception):
    """Base class for every error raised by this package."""


class ProtocolDriftError(FortuneCookieError):
    """Client-side encoding no longer matches the on-chain program. Not retried."""


class SigningDeclinedError(FortuneCookieError):
    """The wallet refused to sign the transaction."""


class LedgerQueryError(FortuneCookieError):
    """A read against the RPC node failed."""


class AccountNotFoundError(LedgerQueryError):
    """The requested account does not exist on chain."""


class SubmissionError(FortuneCookieError):
    """Sending or simulating a transaction failed before confirmation."""


class ConfirmationTimeoutError(SubmissionError):
    """The transaction was sent but was not confirmed in time."""

    def __init__(self, signature: str, message: Optional[str] = None):
        super().__init__(message or f"Transaction {signature} was not confirmed in time")
        self.signature = signature


class GestureInitError(FortuneCookieError):
    """Gesture session could not start. ``diagnosis`` is the user-facing text."""

    def __init__(self, diagnosis: str, permission_denied: bool = False):
        super().__init__(diagnosis)
        self.diagnosis = diagnosis
        self.permission_denied = permission_denied
