"""Engine error taxonomy"""

from typing import Optional


class EngineError(Exception):
    """Base class for every error the engine raises"""

    pass


class AuthError(EngineError):
    """No credential, or the server rejected it. Terminal: never retried."""

    pass


class ValidationError(EngineError):
    """Rejected locally before any network call"""

    pass


class PersistenceError(EngineError):
    """Non-2xx response or transport failure while persisting a mutation"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PartialOperationError(EngineError):
    """
    A multi-step operation failed after earlier steps were already applied.
    Applied steps are left in place unless ``compensated`` is True.
    """

    def __init__(
        self,
        message: str,
        completed_steps: Optional[list] = None,
        failed_step: Optional[str] = None,
        cause: Optional[BaseException] = None,
        compensated: bool = False,
    ):
        super().__init__(message)
        self.completed_steps = completed_steps or []
        self.failed_step = failed_step
        self.cause = cause
        self.compensated = compensated
