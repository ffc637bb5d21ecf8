"""Exception taxonomy shared by dispatcher, stream client and orchestrator."""

from __future__ import annotations


class PauseShopError(Exception):
    """Base error for the pauseshop core."""


class OperationCancelled(PauseShopError):
    """Raised when a session token fires; never retried."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class TransientRequestError(PauseShopError):
    """A search request failure that the retry policy may absorb."""


class RequestTimeout(TransientRequestError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Request timed out after {timeout:.1f}s")
        self.timeout = timeout


class BadStatusError(TransientRequestError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"Unexpected status {status_code}")
        self.status_code = status_code


class EmptyResponseError(TransientRequestError):
    def __init__(self, length: int, minimum: int) -> None:
        super().__init__(f"Response body too short ({length} < {minimum} chars)")
        self.length = length


class BotChallengeError(TransientRequestError):
    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"Bot challenge detected: {fingerprint!r}")
        self.fingerprint = fingerprint


class TransportError(TransientRequestError):
    """Wraps httpx transport failures (DNS, connection reset, protocol)."""


class BackendStreamError(PauseShopError):
    """The analysis backend refused or dropped the streaming connection."""


__all__ = [
    "BackendStreamError",
    "BadStatusError",
    "BotChallengeError",
    "EmptyResponseError",
    "OperationCancelled",
    "PauseShopError",
    "RequestTimeout",
    "TransientRequestError",
    "TransportError",
]
