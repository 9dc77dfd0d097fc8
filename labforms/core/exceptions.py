"""Custom exception hierarchy."""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code: int = 500
    title: str = "Internal Server Error"

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400
    title = "Invalid Request"


# Precondition errors: reported immediately, nothing attempted


class PreconditionError(AppError):
    """Base exception for failed generation preconditions."""

    status_code = 400
    title = "Precondition Failed"


class BookingNotFoundError(PreconditionError):
    """Raised when a booking does not exist."""

    status_code = 404
    title = "Booking Not Found"


class ServiceFormNotFoundError(PreconditionError):
    """Raised when a service form does not exist."""

    status_code = 404
    title = "Service Form Not Found"


class BookingNotApprovedError(PreconditionError):
    """Raised when forms are requested for a booking that is not approved."""

    title = "Booking Not Approved"

    def __init__(self, booking_id: Any, current_status: str):
        super().__init__(
            f"Booking must be approved before generating forms. Current status: {current_status}"
        )
        self.booking_id = booking_id
        self.current_status = current_status


class FormsAlreadyGeneratedError(PreconditionError):
    """Raised when initial generation runs for a booking that already has forms."""

    status_code = 409
    title = "Forms Already Generated"

    def __init__(self, booking_id: Any, form_id: Any = None, form_number: Optional[str] = None):
        super().__init__(f"Forms already generated for booking {booking_id}")
        self.booking_id = booking_id
        self.form_id = form_id
        self.form_number = form_number


# Composition errors: reported before any artifact is produced


class CompositionError(AppError):
    """Raised when booking data cannot be turned into render inputs."""

    status_code = 400
    title = "Document Composition Failed"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class WorkspacePricingNotConfiguredError(CompositionError):
    """Raised when no pricing can be resolved for a workspace reservation."""

    title = "Workspace Pricing Not Configured"


# Artifact and commit errors


class RenderError(AppError):
    """Raised when the PDF renderer fails."""
    pass


class StorageError(APIClientError):
    """Raised when the blob store rejects an upload or delete."""
    pass


class ArtifactProductionError(AppError):
    """Raised when a mandatory document cannot be rendered or uploaded."""

    title = "Document Generation Failed"

    def __init__(self, message: str, document_type: str, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.document_type = document_type


class DocumentCommitError(DatabaseError):
    """Raised when the document set transaction rolls back."""

    title = "Document Commit Failed"
