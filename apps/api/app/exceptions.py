"""Domain errors raised by the wallet, auth and trade services.

Every error carries the HTTP status it maps to; ``app.main`` registers a
handler that renders them as ``{"detail": ..., "code": ...}``.
"""
from fastapi import status


class SentinelError(Exception):
    """Base class for all SentinelOS errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.__class__.__name__


class AuthenticationError(SentinelError):
    """Bad, missing or expired signature / session."""
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(SentinelError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(SentinelError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientBalanceError(SentinelError):
    status_code = status.HTTP_400_BAD_REQUEST


class NoWalletError(SentinelError):
    status_code = status.HTTP_404_NOT_FOUND


class NoTokenAccountError(SentinelError):
    """The custodial wallet never held the requested mint."""
    status_code = status.HTTP_400_BAD_REQUEST


class ZeroBalanceError(SentinelError):
    status_code = status.HTTP_400_BAD_REQUEST


class QuoteUnavailable(SentinelError):
    status_code = status.HTTP_502_BAD_GATEWAY


class TransactionBuildFailed(SentinelError):
    status_code = status.HTTP_502_BAD_GATEWAY


class SubmissionFailed(SentinelError):
    """Submission rejected, failed on-chain, or never confirmed."""
    status_code = status.HTTP_502_BAD_GATEWAY


class DecryptionError(SentinelError):
    """Custodial key cannot be decrypted. Fatal for the wallet."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamUnavailable(SentinelError):
    """Every configured RPC endpoint failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
