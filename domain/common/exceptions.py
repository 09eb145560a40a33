"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class BlueprintNotFoundException(BusinessException):
    def __init__(self, payment_intent_id: str):
        super().__init__(
            code=PaymentCode.BLUEPRINT_NOT_FOUND,
            message="No order data found for this payment. Please contact support.",
            error_type="BlueprintNotFound",
            details={"payment_intent_id": payment_intent_id},
        )


class PaymentNotSucceededException(BusinessException):
    def __init__(self, payment_intent_id: str, status: Optional[str]):
        if status == "awaiting_payment_method":
            message = "Payment not yet completed"
        else:
            message = f"Payment status: {status}"
        super().__init__(
            code=PaymentCode.PAYMENT_NOT_SUCCEEDED,
            message=message,
            error_type="PaymentNotSucceeded",
            details={"payment_intent_id": payment_intent_id, "status": status},
        )


class MissingPaymentIntentException(BusinessException):
    def __init__(self, subscription_id: Optional[str], raw: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.PAYMENT_INTENT_MISSING,
            message="Payment processor did not return payment_intent/client_key on subscription",
            error_type="MissingPaymentIntent",
            details={"subscription_id": subscription_id, "raw": raw},
        )


class SubscriptionStepFailedException(BusinessException):
    """A step of the plan -> customer -> subscription chain was rejected."""

    def __init__(self, step: str, detail: str, *, errors: Optional[list] = None):
        super().__init__(
            code=PaymentCode.SUBSCRIPTION_STEP_FAILED,
            message=detail,
            error_type=f"{step}_create_failed",
            details={"step": step, "errors": errors or []},
        )


class DogProfileNotFoundException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=PaymentCode.PROFILE_NOT_FOUND,
            message="Profile not found",
            error_type="DogProfileNotFound",
            details={"email": email},
        )


class LockAcquisitionError(BusinessException):
    """Raised when a keyed critical section could not be entered in time."""

    def __init__(self, key: str):
        super().__init__(
            code=BusinessCode.CONFLICT,
            message=f"Could not acquire lock for {key}",
            error_type="LockAcquisitionError",
            details={"key": key},
        )
