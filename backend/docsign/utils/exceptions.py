class DocSignApiError(Exception):
    """Base exception for DocSign API errors"""
    def __init__(self, code: str, message: str, status_code: int = 400, field: str = None, details: dict = None):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.field = field
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DocSignApiError):
    def __init__(self, message: str, field: str = None, details: dict = None):
        super().__init__("VALIDATION_ERROR", message, 400, field, details)


class NotFoundError(DocSignApiError):
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__("NOT_FOUND", message, 404, details={"resource": resource, "resource_id": resource_id})


class StatusTransitionError(DocSignApiError):
    def __init__(self, current_status: str, requested_status: str, reason: str = None):
        message = f"Invalid status transition from {current_status} to {requested_status}"
        if reason:
            message += f": {reason}"
        super().__init__(
            "INVALID_STATUS_TRANSITION",
            message,
            400,
            details={"current_status": current_status, "requested_status": requested_status}
        )


class FileOperationError(DocSignApiError):
    def __init__(self, operation: str, file_path: str, reason: str = None):
        message = f"File {operation} failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__("FILE_OPERATION_ERROR", message, 500, details={"operation": operation, "file_path": file_path})


class PersistenceError(DocSignApiError):
    def __init__(self, operation: str, reason: str = None):
        message = f"Failed to {operation}"
        if reason:
            message += f": {reason}"
        super().__init__("PERSISTENCE_ERROR", message, 500, details={"operation": operation})


class UnavailableError(DocSignApiError):
    def __init__(self, resource: str, reason: str = None):
        message = f"{resource} is not available"
        if reason:
            message += f": {reason}"
        super().__init__("UNAVAILABLE", message, 503, details={"resource": resource})


class SigningSessionNotFoundError(NotFoundError):
    """Signing session not found"""
    def __init__(self, token: str = None):
        super().__init__("Signing session", token)


class AlreadySignedError(StatusTransitionError):
    """Second submission against a signed session"""
    def __init__(self, token: str = None):
        super().__init__("signed", "signed", "Document already signed")
        if token:
            self.details["token"] = token
