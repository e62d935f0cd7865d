"""
Translation of engine errors into HTTP responses
"""

from fastapi import HTTPException, status

from ..errors import (
    LendingError, NotFoundError, CustomerHasActiveLoansError,
    ValidationError, OverpaymentError
)


def http_error(exc: LendingError) -> HTTPException:
    """Map a LendingError to the status code and error body the dashboard expects"""
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, CustomerHasActiveLoansError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    detail = {
        "success": False,
        "error": type(exc).__name__,
        "message": str(exc)
    }
    if isinstance(exc, ValidationError) and exc.field:
        detail["field"] = exc.field
    if isinstance(exc, OverpaymentError):
        detail["maxAllowed"] = str(exc.max_allowed)
    if isinstance(exc, CustomerHasActiveLoansError):
        detail["activeLoans"] = exc.active_loans

    return HTTPException(status_code=status_code, detail=detail)
