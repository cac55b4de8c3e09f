from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import DeliveryMethod, OrderStatus


class CategoryCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    school_id: Optional[int] = None


class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryResponse(ORMModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    is_active: bool


class MaterialCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: float = Field(gt=0)
    stock_quantity: int = Field(default=0, ge=0)
    min_order_qty: int = Field(default=1, ge=1)
    max_order_qty: Optional[int] = Field(default=None, ge=1)
    brand: Optional[str] = Field(default=None, max_length=100)
    specifications: Optional[Dict[str, Any]] = None
    category_id: int

    @model_validator(mode="after")
    def validate_order_limits(self) -> "MaterialCreateRequest":
        if self.max_order_qty is not None and self.max_order_qty < self.min_order_qty:
            raise ValueError("max_order_qty cannot be less than min_order_qty")
        return self


class MaterialUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    min_order_qty: Optional[int] = Field(default=None, ge=1)
    max_order_qty: Optional[int] = Field(default=None, ge=1)
    brand: Optional[str] = Field(default=None, max_length=100)
    specifications: Optional[Dict[str, Any]] = None
    category_id: Optional[int] = None
    is_active: Optional[bool] = None


class MaterialResponse(ORMModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    price: float
    stock_quantity: int
    min_order_qty: int
    max_order_qty: Optional[int] = None
    brand: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    category_id: int
    is_active: bool
    created_at: Optional[datetime] = None


class CartItemRequest(BaseModel):
    material_id: int
    quantity: int = Field(ge=1)


class CartItemUpdateRequest(BaseModel):
    quantity: int = Field(ge=1)


class CartItemResponse(BaseModel):
    id: int
    material_id: int
    name: str
    unit_price: float
    quantity: int
    subtotal: float


class CartResponse(BaseModel):
    id: Optional[int] = None
    school_id: int
    items: List[CartItemResponse] = Field(default_factory=list)
    total_items: int = 0
    total_amount: float = 0.0


class OrderCreateRequest(BaseModel):
    school_id: Optional[int] = None
    delivery_method: DeliveryMethod = DeliveryMethod.SCHOOL_PICKUP
    delivery_address: Optional[str] = None
    delivery_notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_delivery(self) -> "OrderCreateRequest":
        if self.delivery_method == DeliveryMethod.HOME_DELIVERY and not (self.delivery_address or "").strip():
            raise ValueError("delivery_address is required for home delivery")
        return self


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus
    admin_notes: Optional[str] = None


class OrderCancelRequest(BaseModel):
    reason: Optional[str] = None


class OrderItemResponse(ORMModel):
    id: int
    material_id: Optional[int] = None
    material_name: str
    quantity: int
    unit_price: float
    total_price: float


class OrderResponse(ORMModel):
    id: int
    school_id: int
    order_number: str
    parent_id: int
    status: str
    total_amount: float
    delivery_method: str
    delivery_address: Optional[str] = None
    delivery_notes: Optional[str] = None
    admin_notes: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    prepared_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
