"""
Database Schemas for Data Vista

Each stored Pydantic model maps to a MongoDB collection. Field names are
snake_case in Python and camelCase in the stored documents and on the wire.

Collections:
- users
- products
- orders
"""
from enum import Enum
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class Role(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class EmailNormalizer(BaseModel):
    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


# Users

class NotificationPreferences(CamelModel):
    email_notifications: bool = True
    order_updates: bool = True
    marketing_emails: bool = False
    security_alerts: bool = True
    system_updates: bool = True


class Preferences(CamelModel):
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class UserProfile(CamelModel):
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    timezone: Optional[str] = None
    language: str = "en"
    avatar: Optional[str] = None


class User(EmailNormalizer, UserProfile):
    """
    Users collection schema
    Collection name: "users"
    """
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Unique, lower-cased email address")
    password: str = Field(..., description="BCrypt password hash")
    role: Role = Field(Role.USER, description="user | manager | admin")
    preferences: Preferences = Field(default_factory=Preferences)


# Products

class Product(CamelModel):
    """
    Products collection schema
    Collection name: "products"
    """
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field(..., min_length=1, description="Product description")
    price: float = Field(..., ge=0, description="Unit price")
    category: str = Field(..., min_length=1, description="Free-text category label")
    stock: int = Field(0, ge=0, description="Units in stock")
    image_url: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None


# Orders

class ShippingAddress(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class OrderItem(CamelModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product: ObjectId
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price snapshot")


class Order(CamelModel):
    """
    Orders collection schema
    Collection name: "orders"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: ObjectId
    products: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: str = ""
    shipping_address: ShippingAddress


# Request models

class RegisterRequest(EmailNormalizer):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(EmailNormalizer):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserCreateRequest(EmailNormalizer, UserProfile):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = Role.USER


class UserUpdateRequest(CamelModel):
    # email, password and role are deliberately absent: they are never client-settable here
    name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    timezone: Optional[str] = None
    language: Optional[str] = None
    avatar: Optional[str] = None
    preferences: Optional[Preferences] = None


class ProductCreateRequest(Product):
    pass


class ProductUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    stock: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None


class LineItemRequest(BaseModel):
    product: str = Field(..., min_length=1, description="Product id")
    quantity: int = Field(..., ge=1)


class OrderCreateRequest(CamelModel):
    products: List[LineItemRequest] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = ""


class OrderUpdateRequest(CamelModel):
    products: Optional[List[LineItemRequest]] = Field(None, min_length=1)
    shipping_address: Optional[ShippingAddress] = None
    payment_method: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
