"""
zkchannel Exception Hierarchy

All exceptions inherit from ChannelError for easy catching.
Every failure is raised before any state mutation is committed.
"""


class ChannelError(Exception):
    """Base exception for all zkchannel errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class InvalidParticipants(ChannelError):
    """Raised when a participant list is empty, too long or has duplicates"""
    pass


class InvalidTimeout(ChannelError):
    """Raised when a channel timeout is not strictly positive"""
    pass


class Unauthorized(ChannelError):
    """Raised when the caller is not the leader/participant the operation requires"""
    pass


class ChannelNotFound(ChannelError):
    """Raised when a channel id has never been issued"""
    pass


class InvalidStateForOperation(ChannelError):
    """Raised when the channel lifecycle state does not permit the operation"""
    pass


class TokenNotAllowed(ChannelError):
    """Raised when a token is not registered or not allowed on the channel"""
    pass


class InsufficientBalanceOrAllowance(ChannelError):
    """Raised when a token pull cannot be satisfied"""
    pass


class ProofInvalid(ChannelError):
    """Raised when a proof (or the root it attests) does not verify"""
    pass


class InvalidPublicInputLength(ChannelError):
    """Raised when a public-input vector does not match the tree size"""
    pass


class SignatureInvalid(ChannelError):
    """Raised when a threshold signature does not verify"""
    pass


class AmountMismatch(ChannelError):
    """Raised when a requested amount differs from the verified amount"""
    pass


class AlreadyWithdrawn(ChannelError):
    """Raised when a withdrawal record has already paid out"""
    pass


class ChannelExpired(ChannelError):
    """Raised when an operation arrives after the channel deadline"""
    pass


class ChallengeNotElapsed(ChannelError):
    """Raised when the emergency path is requested before the deadline"""
    pass


class InvalidL2Key(ChannelError):
    """Raised when an L2 key is out of field, changed, or reused in a channel"""
    pass


class UnsupportedTreeSize(ChannelError):
    """Raised when no supported tree size can hold the requested leaves"""
    pass


class ConfigurationError(ChannelError):
    """Raised when protocol configuration is missing or malformed"""
    pass


class JournalError(ChannelError):
    """Raised when the event journal cannot be written or restored"""
    pass
