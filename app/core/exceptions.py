from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# --- Scope ---
class ScopeError(ServiceError):
    """Caller/session context is invalid. Never retried automatically."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(message, status_code)


class NoActiveSessionError(ScopeError):
    def __init__(self, message: str = "No active academic session for this tenant") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ForeignSessionError(ScopeError):
    def __init__(self, message: str = "Academic session does not belong to this tenant") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class ForeignLedgerError(ScopeError):
    def __init__(self, message: str = "Students can only settle their own fees") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


# --- Validation ---
class InputValidationError(ServiceError):
    """Rejected before any write."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


# --- Conflict ---
class ConflictError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class AlreadySettledError(ConflictError):
    def __init__(self, message: str = "Fee is already paid") -> None:
        super().__init__(message)


# --- Integrity ---
class DataIntegrityError(ServiceError):
    """Always rejected and logged; never silently fixed."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(message, status_code)


class InvalidSignatureError(DataIntegrityError):
    def __init__(self, message: str = "Invalid payment signature") -> None:
        super().__init__(message)


class ReferenceNotFoundError(DataIntegrityError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


# --- Collaborators ---
class CollaboratorError(ServiceError):
    """Notification/e-mail dispatch failure. Logged and swallowed by callers."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)
