"""Translation of application errors into HTTP problem responses."""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from labforms.core.exceptions import AppError, CompositionError, FormsAlreadyGeneratedError
from labforms.utils.responses import create_error_detail

GENERIC_DETAIL = "An unexpected error occurred"


def http_error(request: Request, error: AppError) -> HTTPException:
    """Build an HTTPException whose detail is an RFC 7807 body."""
    extensions: Optional[Dict[str, Any]] = None
    if isinstance(error, FormsAlreadyGeneratedError):
        extensions = {
            "formId": str(error.form_id) if error.form_id else None,
            "formNumber": error.form_number,
        }
    elif isinstance(error, CompositionError) and error.details:
        extensions = {"details": error.details}

    # Bare AppError wraps an unexpected exception; its message is internal
    detail = GENERIC_DETAIL if type(error) is AppError else str(error)

    error_detail = create_error_detail(
        title=error.title,
        status=error.status_code,
        detail=detail,
        request=request,
        extensions=extensions,
    )
    return HTTPException(status_code=error.status_code, detail=error_detail.model_dump(mode="json"))
