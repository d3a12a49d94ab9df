class CabinetApiError(Exception):
    """Base exception for key cabinet API errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(CabinetApiError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class NotFoundError(CabinetApiError):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__("NOT_FOUND", message, 404, details={"resource": resource, "resource_id": resource_id})


class PermissionDeniedError(CabinetApiError):
    def __init__(self, message: str = "Permission denied", reason: str = None):
        super().__init__("PERMISSION_DENIED", message, 403, details={"reason": reason} if reason else None)


class ConflictError(CabinetApiError):
    """The key was not in the state the operation requires. Do not blind-retry."""
    def __init__(self, message: str, code: str = "CONFLICT", details: dict = None):
        super().__init__(code, message, 409, details=details)


class KeyUnavailableError(ConflictError):
    def __init__(self, key_id: str, message: str = "Key was just taken by another user"):
        super().__init__(message, code="KEY_UNAVAILABLE", details={"key_id": key_id})


class NotHolderError(ConflictError):
    def __init__(self, key_id: str, user_id: str):
        super().__init__(
            "Key is not currently held by you",
            code="NOT_HOLDER",
            details={"key_id": key_id, "user_id": user_id},
        )


class FaultError(CabinetApiError):
    """Storage or infrastructure failure. Nothing was committed; safe to retry with backoff."""
    def __init__(self, operation: str, reason: str = None):
        message = f"Storage failure during {operation}"
        if reason:
            message += f": {reason}"
        super().__init__("STORAGE_FAULT", message, 503, details={"operation": operation, "retryable": True})


class LedgerImmutableError(CabinetApiError):
    def __init__(self, loan_id: str = None):
        super().__init__(
            "LEDGER_IMMUTABLE",
            "Returned loans cannot be modified",
            500,
            details={"loan_id": loan_id},
        )
