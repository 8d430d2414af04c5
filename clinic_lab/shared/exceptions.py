from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class AppException(HTTPException):
    """
    Base class for API errors.
    
    Rendered as ``{"message": detail, "error": error, **context}`` by the
    handler registered in ``clinic_lab.main``.
    """
    
    def __init__(
        self,
        status_code: int,
        detail: str,
        error: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **context: Any,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error = error
        self.context = context
    
    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.detail}
        if self.error:
            body["error"] = self.error
        body.update(self.context)
        return body


class CredentialsException(AppException):
    """Exception for invalid credentials."""
    
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(AppException):
    """Exception for resource not found."""
    
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class BadRequestException(AppException):
    """Exception for bad request."""
    
    def __init__(self, detail: str = "Bad request", **context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            **context,
        )


class ValidationException(BadRequestException):
    """A required field is missing or malformed."""
    
    def __init__(self, detail: str = "Validation failed", **context: Any):
        super().__init__(detail, error="ValidationError", **context)


class InvalidTransitionException(BadRequestException):
    """
    Workflow guard failed.
    
    Always reports the status the request is in; callers add the unmet
    precondition (``requiredStatuses``, ``billingStatus``, ...) as context.
    """
    
    def __init__(self, detail: str, current_status: Any, **context: Any):
        super().__init__(
            detail,
            error="InvalidTransition",
            currentStatus=getattr(current_status, "value", current_status),
            **context,
        )
        self.current_status = current_status


class ConflictException(AppException):
    """Exception for resource conflict."""
    
    def __init__(self, detail: str = "Resource already exists", **context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error="Conflict",
            **context,
        )


class ForbiddenException(AppException):
    """Exception for forbidden access."""
    
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error="Forbidden",
        )
