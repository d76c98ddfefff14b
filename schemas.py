from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

# Parfum store schemas


class Category(str, Enum):
    women = "women"
    men = "men"
    unisex = "unisex"


class CategoryFilter(str, Enum):
    all = "all"
    women = "women"
    men = "men"
    unisex = "unisex"


class DeliveryMethod(str, Enum):
    nova_poshta = "nova_poshta"
    ukrposhta = "ukrposhta"
    courier = "courier"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class Product(BaseModel):
    id: str = Field(min_length=1)
    brand: str
    name: str
    category: Category
    price: float = Field(ge=0)
    currency: str = "UAH"
    volume: int = Field(gt=0, description="Bottle volume in ml")
    in_stock: bool = True
    popularity_score: float = 0
    concentration: Optional[str] = None
    longevity: Optional[str] = None
    notes_top: Optional[str] = None
    notes_heart: Optional[str] = None
    notes_base: Optional[str] = None
    description_short: Optional[str] = None
    description_full: Optional[str] = None
    image_url: Optional[str] = None


class OrderDraft(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)
    customer_email: Optional[str] = None
    delivery_address: str = Field(min_length=1)
    delivery_method: DeliveryMethod = DeliveryMethod.nova_poshta

    @field_validator("customer_name", "customer_phone", "delivery_address", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("customer_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None


class OrderHeader(BaseModel):
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    delivery_address: str
    delivery_method: DeliveryMethod
    total_amount: float = Field(ge=0)
    currency: str = "UAH"
    status: OrderStatus = OrderStatus.pending

    @classmethod
    def from_draft(cls, draft: OrderDraft, total_amount: float, currency: str = "UAH") -> "OrderHeader":
        return cls(**draft.model_dump(), total_amount=total_amount, currency=currency)


class OrderLineItem(BaseModel):
    order_id: str
    product_id: str
    product_name: str
    quantity: int = Field(ge=1)
    price_at_order: float = Field(ge=0)
