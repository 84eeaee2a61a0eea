"""
Database Schemas for the Peppino's ordering platform

Each collection model below corresponds to a MongoDB collection.
The collection name is the lowercase class name (e.g., MenuItem -> "menuitem").
Cross-document references are stored as string ids.

The second half of the file holds the request models validated at the API
boundary before any business logic runs.
"""
from datetime import date, datetime
from typing import ClassVar, FrozenSet, List, Optional, Literal

from bson import ObjectId
from pydantic import BaseModel, Field, EmailStr, ValidationInfo, field_validator, model_validator

Role = Literal["super-admin", "veg-admin", "non-veg-admin", "customer", "guest"]
AssignableRole = Literal["super-admin", "veg-admin", "non-veg-admin", "customer"]
UserStatus = Literal["active", "deactivated"]
Size = Literal["Small", "Medium", "Large"]
SpicyLevel = Literal["Not Applicable", "Mild", "Medium", "Hot", "Extra Hot"]
CategoryType = Literal["parent", "menu"]
OrderStatus = Literal[
    "pending", "confirmed", "preparing", "ready",
    "out_for_delivery", "delivered", "completed", "cancelled",
]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
PaymentMethod = Literal["card", "cash", "pay_online", "digital_wallet"]
OrderType = Literal["delivery", "pickup"]
Timing = Literal["asap", "scheduled"]
NewsletterSource = Literal["website", "app", "social", "referral"]
ContactType = Literal["general", "complaint", "suggestion", "compliment", "order_issue"]
ContactStatus = Literal["new", "in_progress", "resolved", "closed"]
ContactPriority = Literal["low", "medium", "high", "urgent"]
AddressType = Literal["home", "work", "other"]

ACTIVE_ORDER_STATUSES = ["pending", "confirmed", "preparing", "ready", "out_for_delivery"]

PHONE_PATTERN = r"^\+?[\d\s\-()]+$"
ZIP_PATTERN = r"^\d{5}(-\d{4})?$"


def new_id() -> str:
    return str(ObjectId())


# ============ Collections ==========

class Image(BaseModel):
    id: str = Field(default_factory=new_id)
    public_id: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class Addon(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0)


class User(BaseModel):
    name: str = Field(..., max_length=50, description="Full name")
    email: EmailStr = Field(..., description="Unique among active users")
    password_hash: Optional[str] = Field(None, description="BCrypt password hash, absent for guests")
    phone_number: Optional[str] = None
    role: Role = "customer"
    status: UserStatus = "active"
    session_id: Optional[str] = Field(None, description="Guest session token")
    is_email_verified: bool = False
    last_login: Optional[datetime] = None


class Category(BaseModel):
    name: str = Field(..., max_length=50)
    slug: str
    description: str = Field(..., max_length=500)
    type: CategoryType = "parent"
    parent_category: Optional[str] = Field(None, description="Parent category _id for menu categories")
    is_vegetarian: bool = Field(..., description="Copied from the parent for menu categories")
    image: Optional[Image] = None
    is_active: bool = True
    sort_order: int = 0


class CatalogItem(BaseModel):
    name: str = Field(..., max_length=100)
    description: str = Field(..., max_length=1000)
    category: str = Field(..., description="Reference to category _id")
    images: List[Image] = []
    mrp: float = Field(..., ge=0)
    discounted_price: float = Field(..., ge=0)
    quantity: int = Field(0, ge=0, description="Units in stock")
    sizes: List[Size] = ["Medium"]
    addons: List[Addon] = []
    is_vegetarian: bool
    spicy_level: SpicyLevel = "Not Applicable"
    preparation_time: int = Field(15, ge=1, description="Minutes")
    tags: List[str] = []
    special_instructions: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    is_available: bool = True
    featured: bool = False
    sort_order: int = 0
    total_sales: int = 0


class Menuitem(CatalogItem):
    pass


class Product(CatalogItem):
    pass


class Cart(BaseModel):
    user: str = Field(..., description="Owning user _id; one cart per user")
    items: List[dict] = []
    coupon: Optional[dict] = None


class Order(BaseModel):
    order_number: str
    user: str
    customer: dict
    items: List[dict] = Field(..., description="Snapshot of the cart lines")
    order_type: OrderType = "delivery"
    timing: Timing = "asap"
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    delivery_address: Optional[dict] = None
    payment_method: PaymentMethod = "card"
    payment_status: PaymentStatus = "pending"
    status: OrderStatus = "pending"
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    tax: float = 0.0
    discount: float = 0.0
    coupon_code: Optional[str] = None
    total_price: float = 0.0
    estimated_delivery_time: Optional[datetime] = None
    special_instructions: Optional[str] = None
    is_guest_order: bool = False
    status_history: List[dict] = []


class Newsletter(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    is_active: bool = True
    source: NewsletterSource = "website"
    preferences: dict = {"promotions": True, "new_menu_items": True, "events": True}
    unsubscribed_at: Optional[datetime] = None
    unsubscribe_reason: Optional[str] = None


class Contact(BaseModel):
    name: str = Field(..., max_length=100)
    email: EmailStr
    phone_number: Optional[str] = None
    subject: str = Field(..., max_length=200)
    message: str = Field(..., max_length=2000)
    type: ContactType = "general"
    status: ContactStatus = "new"
    priority: ContactPriority = "medium"
    is_read: bool = False
    response: Optional[dict] = None


class Spicylevel(BaseModel):
    name: str = Field(..., max_length=30)
    description: Optional[str] = Field(None, max_length=200)
    level: int = Field(..., ge=0, le=10)
    parent_category: str = Field(..., description="Parent category _id")
    is_vegetarian: bool = Field(..., description="Copied from the parent category")
    is_active: bool = True
    sort_order: int = 0
    created_by: str


class Preparation(BaseModel):
    name: str = Field(..., max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    parent_category: str = Field(..., description="Parent category _id")
    is_vegetarian: bool = Field(..., description="Copied from the parent category")
    is_active: bool = True
    sort_order: int = 0
    created_by: str


class Address(BaseModel):
    user: str = Field(..., description="Owning user _id")
    type: AddressType = "home"
    label: Optional[str] = Field(None, max_length=50)
    full_name: str = Field(..., max_length=100)
    phone_number: str
    street: str = Field(..., max_length=200)
    apartment: Optional[str] = Field(None, max_length=50)
    city: str = Field(..., max_length=100)
    state: str = Field(..., max_length=100)
    zip_code: str
    country: str = "United States"
    is_default: bool = False
    delivery_instructions: Optional[str] = Field(None, max_length=300)


# ============ Request models ==========

class UpdateModel(BaseModel):
    """Partial update body.

    Omitted fields are left untouched. An explicit null is rejected unless
    the field is listed in ``NULLABLE``, in which case it clears the stored
    value.
    """
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*")
    @classmethod
    def reject_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name not in cls.NULLABLE:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class AddonIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0)


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    type: CategoryType = "parent"
    parent_category: Optional[str] = None
    is_vegetarian: Optional[bool] = None
    sort_order: int = 0

    @model_validator(mode="after")
    def check_kind(self):
        if self.type == "menu" and not self.parent_category:
            raise ValueError("Menu categories require a parent_category")
        if self.type == "parent" and self.is_vegetarian is None:
            raise ValueError("Vegetarian status is required for parent categories")
        return self


class CategoryUpdate(UpdateModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    is_vegetarian: Optional[bool] = None
    parent_category: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CatalogItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: str
    mrp: float = Field(..., ge=0)
    discounted_price: float = Field(..., ge=0)
    quantity: int = Field(0, ge=0)
    sizes: List[Size] = ["Medium"]
    addons: List[AddonIn] = []
    is_vegetarian: Optional[bool] = None
    spicy_level: SpicyLevel = "Not Applicable"
    preparation_time: int = Field(15, ge=1)
    tags: List[str] = []
    special_instructions: Optional[str] = Field(None, max_length=500)
    featured: bool = False
    sort_order: int = 0

    @model_validator(mode="after")
    def check_price(self):
        if self.discounted_price > self.mrp:
            raise ValueError("Discounted price cannot be greater than MRP")
        return self


class CatalogItemUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"special_instructions"})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    category: Optional[str] = None
    mrp: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    sizes: Optional[List[Size]] = None
    addons: Optional[List[AddonIn]] = None
    spicy_level: Optional[SpicyLevel] = None
    preparation_time: Optional[int] = Field(None, ge=1)
    tags: Optional[List[str]] = None
    special_instructions: Optional[str] = Field(None, max_length=500)
    featured: Optional[bool] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None
    is_available: Optional[bool] = None


class BulkStatusRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)
    is_active: bool


class CartItemAdd(BaseModel):
    menu_item_id: str
    quantity: int = Field(1, ge=1, le=10)
    size: Size = "Medium"
    addons: List[str] = Field([], description="Addon ids of the menu item")
    special_instructions: Optional[str] = Field(None, max_length=200)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=10)


class CouponApply(BaseModel):
    coupon_code: str = Field(..., min_length=1)


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = None


class DeliveryAddress(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "United States"
    phone_number: Optional[str] = None


class CheckoutRequest(BaseModel):
    customer: CustomerInfo
    order_type: OrderType = "delivery"
    timing: Timing = "asap"
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    delivery_address: Optional[DeliveryAddress] = None
    payment_method: PaymentMethod = "card"
    special_instructions: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_fulfilment(self):
        if self.order_type == "delivery" and self.delivery_address is None:
            raise ValueError("Complete delivery address is required for delivery orders")
        if self.timing == "scheduled" and (self.scheduled_date is None or self.scheduled_time is None):
            raise ValueError("Scheduled date and time are required for scheduled orders")
        return self


class GuestCheckoutRequest(CheckoutRequest):
    session_id: str = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_any(self):
        if self.status is None and self.payment_status is None:
            raise ValueError("status or payment_status is required")
        return self


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone_number: Optional[str] = None
    session_id: Optional[str] = Field(None, description="Guest session to convert into this account")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class UserUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"phone_number"})

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class UserRoleUpdate(BaseModel):
    role: AssignableRole


class NewsletterSubscribe(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=50)
    source: NewsletterSource = "website"
    preferences: Optional[dict] = None


class NewsletterUnsubscribe(BaseModel):
    email: EmailStr
    reason: Optional[str] = Field(None, max_length=200)


class NewsletterSend(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, description="HTML body")


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = None
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: ContactType = "general"


class ContactUpdate(BaseModel):
    status: Optional[ContactStatus] = None
    priority: Optional[ContactPriority] = None


class ContactReply(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)


class SpicyLevelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=30)
    description: Optional[str] = Field(None, max_length=200)
    level: int = Field(..., ge=0, le=10)
    parent_category: str
    sort_order: int = Field(0, ge=0)


class SpicyLevelUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[str] = Field(None, min_length=1, max_length=30)
    description: Optional[str] = Field(None, max_length=200)
    level: Optional[int] = Field(None, ge=0, le=10)
    parent_category: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class PreparationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    parent_category: str
    sort_order: int = Field(0, ge=0)


class PreparationUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    parent_category: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class AddressCreate(BaseModel):
    type: AddressType = "home"
    label: Optional[str] = Field(None, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    street: str = Field(..., min_length=1, max_length=200)
    apartment: Optional[str] = Field(None, max_length=50)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., pattern=ZIP_PATTERN)
    country: str = Field("United States", max_length=100)
    is_default: bool = False
    delivery_instructions: Optional[str] = Field(None, max_length=300)


class AddressUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"label", "apartment", "delivery_instructions"})

    type: Optional[AddressType] = None
    label: Optional[str] = Field(None, max_length=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    street: Optional[str] = Field(None, min_length=1, max_length=200)
    apartment: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    zip_code: Optional[str] = Field(None, pattern=ZIP_PATTERN)
    country: Optional[str] = Field(None, max_length=100)
    is_default: Optional[bool] = None
    delivery_instructions: Optional[str] = Field(None, max_length=300)


class ProfileUpdate(UpdateModel):
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"phone_number"})

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone_number: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)
