class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class InvalidInputError(AppError):
    """Raised when a request field is missing, malformed or out of range."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class AuthorizationError(AppError):
    """Raised when the caller's role does not permit the operation."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, status_code=403)

class ScheduleConflictError(AppError):
    """Raised when a class overlaps another class on the same week and day."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str | None = None):
        if resource_id is None:
            message = f"{resource_type} not found"
        else:
            message = f"{resource_type} with id {resource_id} not found"
        super().__init__(message, status_code=404, details={"resource": resource_type})

class ConcurrentModificationError(AppError):
    """Raised when a save loses a race against another writer. Safe to retry."""
    def __init__(self, message: str = "Timetable was modified by another request. Reload and retry."):
        super().__init__(message, status_code=409, details={"retryable": True})
