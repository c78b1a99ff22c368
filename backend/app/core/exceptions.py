class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when a schedule entry is malformed (time format, bounds, weekday)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id

class UnavailableResourceError(AppError):
    """Raised when a referenced classroom is flagged inactive or unavailable."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            f"{resource_type} {resource_id} is not available",
            status_code=409,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class ConflictError(AppError):
    """Raised when a candidate entry collides with existing entries.

    ``conflicts`` holds every collision found, so callers can present them all at once.
    """
    def __init__(self, conflicts: list):
        self.conflicts = list(conflicts)
        reasons = "; ".join(conflict.message for conflict in self.conflicts)
        super().__init__(
            f"Schedule conflicts detected: {reasons}",
            status_code=409,
            details={"conflicts": [conflict.as_dict() for conflict in self.conflicts]},
        )

class ConcurrencyError(AppError):
    """Raised when check-then-write lost a race. Safe to retry once."""
    def __init__(self, message: str = "Schedule changed concurrently, please retry"):
        super().__init__(message, status_code=409, details={"retryable": True})
