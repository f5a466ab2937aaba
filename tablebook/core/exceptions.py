# tablebook/core/exceptions.py
"""
Domain-specific exceptions for the Tablebook engine.

Every failure a caller can act on is a typed ``DomainException`` with a
stable ``code``. The API layer converts them with ``to_http_exception``;
service callers catch the specific subclass.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when input validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when a caller or shared secret cannot be authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a booking, request, code or account is missing."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails unexpectedly."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details,
            },
        )


class ServiceUnavailableException(DomainException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class RepositoryException(Exception):
    """Raised by repositories when the store rejects an operation."""


# Scheduling and settlement errors


class InsufficientBalanceException(BusinessRuleException):
    """The account cannot cover the debit."""

    def __init__(
        self,
        message: str = "Insufficient balance",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="INSUFFICIENT_BALANCE", details=details)


class SlotConflictException(ConflictException):
    """A requested slot is already taken or was lost to a concurrent writer."""

    def __init__(
        self,
        message: str = "Slot no longer available",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="SLOT_CONFLICT", details=details)


class ResourceUnavailableException(ConflictException):
    """No resource is free for the full span."""

    def __init__(
        self,
        message: str = "No table is free for the whole selected time",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="RESOURCE_UNAVAILABLE", details=details)


class InvalidSpanException(ValidationException):
    """Span too short, too long, misaligned or in the past."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="INVALID_SPAN", details=details)


class TransientStoreConflictException(ServiceUnavailableException):
    """Store contention persisted through every retry attempt; the caller may retry."""

    def __init__(
        self,
        message: str = "The system is busy, please retry",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="TRANSIENT_STORE_CONFLICT", details=details)


class AccessCodeLimitException(ConflictException):
    def __init__(
        self,
        message: str = "An active access code already exists",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="ACCESS_CODE_LIMIT", details=details)


class CancellationNotAllowedException(BusinessRuleException):
    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CANCELLATION_NOT_ALLOWED", details=details)


class RedemptionRejectedException(ForbiddenException):
    """A redemption secret is known but not usable right now."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="REDEMPTION_REJECTED", details=details)
