from fastapi import HTTPException, status
from typing import Optional, Dict, Any

class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict] = None,
        error_code: str = "NOT_FOUND_001",
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            message=message,
            details=details
        )

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Any):
        super().__init__(
            message="User not found",
            details={"user_id": user_id},
            error_code="USER_NOT_FOUND",
        )

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: Any):
        super().__init__(
            message="Order not found",
            details={"order_id": order_id},
            error_code="ORDER_NOT_FOUND",
        )

class InvalidProductError(BaseAPIException):
    """Unresolvable products or products spanning several stores"""
    def __init__(self, message: str = "Invalid product information", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_PRODUCT",
            message=message,
            details=details
        )

class ForbiddenOrderAccessError(BaseAPIException):
    def __init__(self, message: str = "Only the owner can access this order", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="ORDER_FORBIDDEN",
            message=message,
            details=details
        )

class InvalidOrderStateError(BaseAPIException):
    def __init__(self, message: str = "Order state does not allow this transition", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_ORDER_STATE",
            message=message,
            details=details
        )

class InsufficientPointsError(BaseAPIException):
    """Point balance does not cover the requested spend"""
    def __init__(self, message: str = "Insufficient points", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INSUFFICIENT_POINTS",
            message=message,
            details=details
        )

class InsufficientPointsForRevertError(BaseAPIException):
    """Earned points were already spent and cannot be taken back"""
    def __init__(self, message: str = "Insufficient points to revert earned points", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="INSUFFICIENT_POINTS_FOR_REVERT",
            message=message,
            details=details
        )

class SettlementFailureError(BaseAPIException):
    """Unexpected failure inside an order/settlement transaction"""
    def __init__(self, message: str = "Order settlement failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="SETTLEMENT_FAILURE",
            message=message,
            details=details
        )

class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )
