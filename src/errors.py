"""
Exceptions raised by the Rancher service upgrader.
"""

from typing import Optional


class UpgraderError(Exception):
    """Base exception for upgrader errors."""

    pass


class ConfigError(UpgraderError):
    """Raised when the environment does not hold a usable configuration."""

    pass


class MissingField(UpgraderError):
    """Raised when a required field is absent from a service document."""

    def __init__(self, field: str):
        super().__init__(f"Missing field: {field}")
        self.field = field


class TransportError(UpgraderError):
    """Raised on network failures and non-2xx HTTP responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ResponseError(UpgraderError):
    """Raised when a response body cannot be decoded into the expected shape."""

    pass


class PreconditionError(UpgraderError):
    """Raised when the service is not in a state that allows the requested action."""

    pass


class WaitTimeout(UpgraderError):
    """Raised when a resource does not reach a desired state in time."""

    def __init__(self, desired_states, service=None, elapsed: float = 0.0):
        states = ", ".join(sorted(desired_states))
        super().__init__(f"Timed out after {elapsed:.0f}s waiting for '{states}'")
        self.desired_states = frozenset(desired_states)
        self.service = service
        self.elapsed = elapsed


class VerificationFailed(UpgraderError):
    """Raised when the verification command fails."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class RecoveryFailed(UpgraderError):
    """Raised when a cancel, rollback or container restart fails."""

    pass


class NoServiceConfig(RecoveryFailed):
    """Raised when no service snapshot is available to continue a recovery."""

    pass
