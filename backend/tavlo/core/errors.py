"""
Domain exceptions raised by services and translated to HTTP errors by routes
"""
from typing import Optional


class TavloError(Exception):
    """Base class for application errors"""
    pass


class InvalidURLError(TavloError, ValueError):
    """URL could not be parsed"""
    pass


class ContentValidationError(TavloError, ValueError):
    """Extracted content or summary failed quality checks"""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class InvalidInputError(TavloError, ValueError):
    """Request data is well-formed but refers to something unusable"""
    pass


class LLMError(TavloError):
    """LLM request failed or returned unusable output"""
    pass


class NotFoundError(TavloError):
    """Requested record does not exist"""
    pass


class PermissionDeniedError(TavloError):
    """Record belongs to another user"""
    pass


class AuthenticationError(TavloError):
    """Missing or invalid credentials"""
    pass


class RateLimitExceededError(TavloError):
    """Caller exceeded a rate limit window"""

    def __init__(self, message: str, retry_after: int, limit: int, reset: int):
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit
        self.reset = reset
