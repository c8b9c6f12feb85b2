"""
Pydantic models for request/response validation.
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Literal, Optional

from config import settings


class ApiBase(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Subscription Models ─────────────────────────────────────────────

class SelectedDayEntry(ApiBase):
    """One weekday of a plan: either a single mealType or a list of meals."""
    day: str = Field(..., description="Monday..Friday")
    meal_type: Optional[str] = Field(default=None, alias="mealType")
    meals: Optional[List[str]] = Field(default=None, description="lunch and/or dinner")

    @model_validator(mode="after")
    def _require_meal(self):
        if not self.meal_type and not self.meals:
            raise ValueError("Each selected day needs mealType or meals")
        return self


class CustomerInfo(ApiBase):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=254)
    phone: str = Field(..., min_length=1, max_length=40)
    address: str = Field(..., min_length=1, max_length=500)


class SubscribeRequest(ApiBase):
    """
    Start a subscription checkout.

    Customer details may be sent flat (customerName, customerEmail, ...)
    or nested under "customer".
    """
    selected_days: List[SelectedDayEntry] = Field(..., alias="selectedDays", min_length=1)
    weeks: int = Field(..., ge=1, description="Number of subscription weeks")
    customer: Optional[CustomerInfo] = None
    customer_name: Optional[str] = Field(default=None, alias="customerName", max_length=200)
    customer_email: Optional[str] = Field(default=None, alias="customerEmail", max_length=254)
    customer_phone: Optional[str] = Field(default=None, alias="customerPhone", max_length=40)
    customer_address: Optional[str] = Field(default=None, alias="customerAddress", max_length=500)

    @model_validator(mode="after")
    def _resolve_customer(self):
        if self.weeks > settings.max_subscription_weeks:
            raise ValueError(f"weeks must be at most {settings.max_subscription_weeks}")
        if self.customer is None:
            fields = {
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
                "address": self.customer_address,
            }
            missing = [k for k, v in fields.items() if not v]
            if missing:
                raise ValueError(f"Missing customer fields: {', '.join(missing)}")
            self.customer = CustomerInfo(**fields)
        return self


class SubscribeResponse(ApiBase):
    url: str
    order_id: str = Field(..., alias="orderId")


# ── Cancellation Models ─────────────────────────────────────────────

class CancelRequest(ApiBase):
    """
    Cancel upcoming deliveries of a subscription.

    Either cancelAll=true or a list of orderIds. The older form
    {cancel_type: "all"|"single", order_id_to_cancel} is still accepted.
    """
    order_id: str = Field(..., alias="orderId", min_length=1)
    cancel_all: bool = Field(default=False, alias="cancelAll")
    order_ids: Optional[List[int]] = Field(default=None, alias="orderIds")
    cancel_type: Optional[Literal["all", "single"]] = None
    order_id_to_cancel: Optional[int] = None
    reason: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def _apply_legacy_fields(self):
        if self.cancel_type == "all":
            self.cancel_all = True
        elif self.cancel_type == "single" and self.order_id_to_cancel is not None:
            self.order_ids = [self.order_id_to_cancel]
        return self


class CancelResponse(ApiBase):
    refunded_count: int = Field(..., alias="refundedCount")
    no_refund_count: int = Field(..., alias="noRefundCount")
    refund_failed_count: int = Field(..., alias="refundFailedCount")
    total_refund: float = Field(..., alias="totalRefund")


# ── Public Content Models ───────────────────────────────────────────

class ContactRequest(ApiBase):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=254)
    subject: str = Field(..., min_length=1, max_length=300)
    message: str = Field(..., min_length=1, max_length=5000)
    phone: Optional[str] = Field(default=None, max_length=40)


# ── Admin Models ────────────────────────────────────────────────────

class LoginRequest(ApiBase):
    password: str = Field(..., min_length=1)


class LoginResponse(ApiBase):
    token: str
    expires_in: int = Field(..., alias="expiresIn", description="Seconds until expiry")


class OrderStatusUpdate(ApiBase):
    id: int = Field(..., description="subscription_orders row id")
    status: str


class ContentUpdate(ApiBase):
    key: str = Field(..., min_length=1, max_length=200)
    value: Optional[str] = None
    type: Optional[str] = Field(default=None, max_length=50)


class MenuUpdate(ApiBase):
    """Partial update of a menu item; only fields present are changed."""
    id: int
    day: Optional[str] = None
    appetizer: Optional[str] = None
    curry: Optional[str] = None
    biryani: Optional[str] = None
    egg: Optional[str] = None
    naan: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"id"})
