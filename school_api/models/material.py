from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String, Text, UniqueConstraint

from .base import Base, TenantModel, TimestampMixin
from school_api.schemas.enums import DeliveryMethod, OrderStatus


class MaterialCategory(TimestampMixin, TenantModel):
    __tablename__ = "material_categories"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_material_category_name"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Material(TimestampMixin, TenantModel):
    """Uniforms, books and supplies a school sells to parents"""
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)
    min_order_qty = Column(Integer, nullable=False, default=1)
    max_order_qty = Column(Integer, nullable=True)
    brand = Column(String(100), nullable=True)
    specifications = Column(JSON, nullable=True)
    category_id = Column(Integer, ForeignKey("material_categories.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Cart(TimestampMixin, TenantModel):
    __tablename__ = "material_carts"
    __table_args__ = (
        UniqueConstraint("parent_id", "school_id", name="uq_cart_parent_school"),
    )

    id = Column(Integer, primary_key=True)
    parent_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class CartItem(Base):
    __tablename__ = "material_cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "material_id", name="uq_cart_item_material"),
    )

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("material_carts.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)


class MaterialOrder(TimestampMixin, TenantModel):
    """A checked-out cart. Stock is taken when the school confirms the order."""
    __tablename__ = "material_orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(40), unique=True, nullable=False)
    parent_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    total_amount = Column(Float, nullable=False)
    delivery_method = Column(String(20), nullable=False, default=DeliveryMethod.SCHOOL_PICKUP.value)
    delivery_address = Column(Text, nullable=True)
    delivery_notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    confirmed_at = Column(DateTime, nullable=True)
    prepared_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)


class MaterialOrderItem(Base):
    """Name and price are copied so the order survives catalogue edits"""
    __tablename__ = "material_order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("material_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="SET NULL"), nullable=True)
    material_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
