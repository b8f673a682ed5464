"""
Schemas for the Storefront

Product, User and Order mirror the MongoDB collections (collection name is the
lowercase of the class name). CartLine and RecentlyViewedEntry are the
device-local records persisted as JSON arrays.
"""
from datetime import datetime, timezone
from typing import List, Optional, Literal, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

ProductType = Literal["sneakers", "loafers", "heels", "sandals"]
Gender = Literal["male", "female", "unisex"]
StockStatus = Literal["InStock", "LowStock", "OutOfStock"]
PaymentMethod = Literal["pay_on_delivery", "pay_now"]
OrderStatus = Literal["Processing", "Shipped", "Completed", "Cancelled"]

# Bounds of the catalogue price slider
PRICE_SLIDER_MIN = 12000
PRICE_SLIDER_MAX = 800000


def _as_str(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ----------------------- Catalogue -----------------------
class ProductBase(BaseModel):
    name: str
    brand: str
    category: str
    type: ProductType
    gender: Gender
    price: int = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    status: StockStatus = "InStock"
    sizes: List[str] = []
    image: str = ""
    short_description: str = ""

    @field_validator("sizes", mode="before")
    @classmethod
    def sizes_as_labels(cls, v):
        if v is None:
            return []
        return [_as_str(s) for s in v]


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    type: Optional[ProductType] = None
    gender: Optional[Gender] = None
    price: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    status: Optional[StockStatus] = None
    sizes: Optional[List[str]] = None
    image: Optional[str] = None
    short_description: Optional[str] = None

    @field_validator("sizes", mode="before")
    @classmethod
    def sizes_as_labels(cls, v):
        if v is None:
            return None
        return [_as_str(s) for s in v]


class Product(ProductBase):
    id: str

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v):
        return _as_str(v)


# ----------------------- Filtering -----------------------
class PriceRange(BaseModel):
    min: int = Field(PRICE_SLIDER_MIN, ge=0)
    max: int = Field(PRICE_SLIDER_MAX, ge=0)

    @model_validator(mode="after")
    def ordered(self):
        if self.min > self.max:
            raise ValueError("price range minimum must not exceed maximum")
        return self


class FilterCriteria(BaseModel):
    type: Union[ProductType, Literal["all"]] = "all"
    gender: Union[Gender, Literal["any"]] = "any"
    brand: str = "all"
    price_range: PriceRange = Field(default_factory=PriceRange)


# ----------------------- Device-local records -----------------------
class CartLine(BaseModel):
    id: str
    name: str = ""
    price: int = Field(..., ge=0)
    brand: str = ""
    image: str = ""
    size: Optional[str] = None
    quantity: int = Field(1, ge=1)

    @field_validator("id", "size", mode="before")
    @classmethod
    def labels_as_str(cls, v):
        return _as_str(v)


class RecentlyViewedEntry(BaseModel):
    id: str
    name: str = ""
    image: str = ""
    price: int = Field(0, ge=0)
    brand: str = ""
    category: str = ""
    viewed_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def id_as_str(cls, v):
        return _as_str(v)


class CartTotals(BaseModel):
    subtotal: int
    item_count: int
    delivery_fee: int = 0
    total: int


# ----------------------- Checkout & orders -----------------------
class CheckoutForm(BaseModel):
    full_name: str = ""
    phone: str = ""
    email: str = ""
    address1: str = ""
    address2: str = ""
    city: str = ""
    state: str = ""
    lga: str = ""
    landmark: str = ""
    notes: str = ""
    payment_method: str = "pay_on_delivery"


class DeliveryAddress(BaseModel):
    address1: str
    address2: str = ""
    city: str
    state: str
    lga: str
    landmark: str = ""
    notes: str = ""


class OrderItem(BaseModel):
    product_id: str
    name: str
    price: int
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    image: Optional[str] = None


class Order(BaseModel):
    customer_name: str
    customer_email: str
    customer_phone: str
    delivery_address: DeliveryAddress
    payment_method: PaymentMethod = "pay_on_delivery"
    items: List[OrderItem]
    amount: int = Field(..., ge=0)
    status: OrderStatus = "Processing"
    created_at: datetime = Field(default_factory=utcnow)
    id: Optional[str] = None


# ----------------------- Identity -----------------------
class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: EmailStr
    password_hash: str = Field(..., description="Hashed password")
    is_admin: bool = False


class UserProfile(BaseModel):
    id: str
    name: str
    email: str
    is_admin: bool = False


class Session(BaseModel):
    token: str
    user: UserProfile
