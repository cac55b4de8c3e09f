import secrets
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, or_, select, update

from school_api.core.errors import BusinessRuleError, NotFoundError, PermissionDenied
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import Cart, CartItem, Material, MaterialCategory, MaterialOrder, MaterialOrderItem, utcnow
from school_api.schemas.enums import NotificationType, OrderStatus, UserRole
from school_api.schemas.material import (
    CartItemRequest,
    CategoryCreateRequest,
    CategoryUpdateRequest,
    MaterialCreateRequest,
    MaterialUpdateRequest,
    OrderCreateRequest,
    OrderStatusUpdateRequest
)
from school_api.services.base_service import BaseService
from school_api.services.notification_service import NotificationService


class MaterialService(BaseService):
    """Material categories and the catalogue a school sells to parents"""

    # Categories

    async def create_category(self, data: CategoryCreateRequest) -> MaterialCategory:
        school_id = await self.target_school(data.school_id)
        await self.ensure_unique(
            MaterialCategory,
            [MaterialCategory.school_id == school_id, MaterialCategory.name == data.name],
            f"Category {data.name} already exists in this school"
        )
        category = MaterialCategory(school_id=school_id, name=data.name, description=data.description)
        self.db.add(category)
        await self.commit(category)
        self.log_write("created", "MaterialCategory", category.id, school_id)
        return category

    async def list_categories(self, pagination: Pagination, is_active: Optional[bool] = None, school_id: Optional[int] = None):
        stmt = select(MaterialCategory)
        if is_active is not None:
            stmt = stmt.where(MaterialCategory.is_active.is_(is_active))
        return await self.list_page(
            stmt, MaterialCategory, pagination, ResourceKind.SCHOOL, school_id, order_by=[MaterialCategory.name]
        )

    async def get_category(self, category_id: int) -> MaterialCategory:
        return await self.get_visible(MaterialCategory, category_id, ResourceKind.SCHOOL, "Category")

    async def update_category(self, category_id: int, data: CategoryUpdateRequest) -> MaterialCategory:
        category = await self.get_category(category_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in updates:
            await self.ensure_unique(
                MaterialCategory,
                [MaterialCategory.school_id == category.school_id, MaterialCategory.name == updates["name"]],
                f"Category {updates['name']} already exists in this school",
                exclude_id=category.id
            )
        self.apply_updates(category, updates)
        await self.commit(category)
        self.log_write("updated", "MaterialCategory", category.id, category.school_id)
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self.get_category(category_id)
        counts = {"materials": await self.count(Material, Material.category_id == category.id)}
        self.ensure_no_dependents(counts, "Cannot delete category that still has materials")
        await self.delete(category)
        self.log_write("deleted", "MaterialCategory", category_id, category.school_id)

    # Materials

    async def create_material(self, data: MaterialCreateRequest) -> Material:
        category = await self.get_category(data.category_id)
        material = Material(school_id=category.school_id, **data.model_dump())
        self.db.add(material)
        await self.commit(material)
        self.log_write("created", "Material", material.id, material.school_id)
        return material

    async def list_materials(
        self,
        pagination: Pagination,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        in_stock: Optional[bool] = None,
        is_active: Optional[bool] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Material)
        if category_id is not None:
            stmt = stmt.where(Material.category_id == category_id)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(Material.name.ilike(term), Material.brand.ilike(term)))
        if in_stock is True:
            stmt = stmt.where(Material.stock_quantity > 0)
        elif in_stock is False:
            stmt = stmt.where(Material.stock_quantity == 0)
        if is_active is not None:
            stmt = stmt.where(Material.is_active.is_(is_active))
        return await self.list_page(stmt, Material, pagination, ResourceKind.SCHOOL, school_id, order_by=[Material.name])

    async def get_material(self, material_id: int) -> Material:
        return await self.get_visible(Material, material_id, ResourceKind.SCHOOL, "Material")

    async def update_material(self, material_id: int, data: MaterialUpdateRequest) -> Material:
        material = await self.get_material(material_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "category_id" in updates:
            await self.ensure_in_tenant(MaterialCategory, updates["category_id"], material.school_id, "Category")

        min_qty = updates.get("min_order_qty", material.min_order_qty)
        max_qty = updates.get("max_order_qty", material.max_order_qty)
        if max_qty is not None and max_qty < min_qty:
            raise BusinessRuleError("max_order_qty cannot be less than min_order_qty")

        self.apply_updates(material, updates)
        await self.commit(material)
        self.log_write("updated", "Material", material.id, material.school_id)
        return material

    async def delete_material(self, material_id: int) -> None:
        material = await self.get_material(material_id)
        async with self.transaction():
            await self.db.execute(delete(CartItem).where(CartItem.material_id == material.id))
            await self.db.delete(material)
        self.log_write("deleted", "Material", material_id, material.school_id)


class CartService(BaseService):
    """
    A parent keeps one cart per school. Quantities are checked against the
    material's order limits and current stock on every change.
    """

    def _school_for_cart(self, school_id: Optional[int]) -> int:
        # Carts are keyed by the caller, so any school id only selects among their own carts
        if school_id is None and self.identity is not None:
            school_id = self.identity.school_id
        if school_id is None:
            raise PermissionDenied("No school selected for this cart")
        return school_id

    async def _cart(self, school_id: int, create: bool = False) -> Optional[Cart]:
        stmt = select(Cart).where(Cart.parent_id == self.actor_id, Cart.school_id == school_id)
        cart = (await self.db.execute(stmt)).scalar_one_or_none()
        if cart is None and create:
            cart = Cart(parent_id=self.actor_id, school_id=school_id)
            self.db.add(cart)
            await self.db.flush()
        return cart

    @staticmethod
    def _check_quantity(material: Material, quantity: int) -> None:
        if not material.is_active:
            raise BusinessRuleError(f"{material.name} is not available")
        if quantity < material.min_order_qty:
            raise BusinessRuleError(f"Minimum order quantity for {material.name} is {material.min_order_qty}")
        if material.max_order_qty is not None and quantity > material.max_order_qty:
            raise BusinessRuleError(f"Maximum order quantity for {material.name} is {material.max_order_qty}")
        if quantity > material.stock_quantity:
            raise BusinessRuleError(
                f"Only {material.stock_quantity} of {material.name} in stock",
                details={"available": material.stock_quantity}
            )

    async def view(self, school_id: Optional[int] = None) -> Dict[str, Any]:
        school_id = self._school_for_cart(school_id)
        cart = await self._cart(school_id)
        summary: Dict[str, Any] = {
            "id": cart.id if cart else None,
            "school_id": school_id,
            "items": [],
            "total_items": 0,
            "total_amount": 0.0
        }
        if cart is None:
            return summary

        rows = await self.db.execute(
            select(CartItem, Material)
            .join(Material, Material.id == CartItem.material_id)
            .where(CartItem.cart_id == cart.id)
            .order_by(CartItem.id)
        )
        for item, material in rows.all():
            subtotal = round(material.price * item.quantity, 2)
            summary["items"].append({
                "id": item.id,
                "material_id": material.id,
                "name": material.name,
                "unit_price": material.price,
                "quantity": item.quantity,
                "subtotal": subtotal
            })
            summary["total_items"] += item.quantity
            summary["total_amount"] = round(summary["total_amount"] + subtotal, 2)
        return summary

    async def add_item(self, data: CartItemRequest) -> Dict[str, Any]:
        material = await self.get_visible(Material, data.material_id, ResourceKind.SCHOOL, "Material")

        async with self.transaction():
            cart = await self._cart(material.school_id, create=True)
            stmt = select(CartItem).where(CartItem.cart_id == cart.id, CartItem.material_id == material.id)
            item = (await self.db.execute(stmt)).scalar_one_or_none()
            quantity = data.quantity + (item.quantity if item is not None else 0)
            self._check_quantity(material, quantity)
            if item is None:
                self.db.add(CartItem(cart_id=cart.id, material_id=material.id, quantity=quantity))
            else:
                item.quantity = quantity

        self.log_write(f"added {data.quantity} x material {material.id}", "Cart", cart.id, material.school_id)
        return await self.view(material.school_id)

    async def _item(self, item_id: int):
        stmt = (
            select(CartItem, Cart, Material)
            .join(Cart, Cart.id == CartItem.cart_id)
            .join(Material, Material.id == CartItem.material_id)
            .where(CartItem.id == item_id, Cart.parent_id == self.actor_id)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            raise NotFoundError("Cart item not found")
        return row

    async def update_item(self, item_id: int, quantity: int) -> Dict[str, Any]:
        item, cart, material = await self._item(item_id)
        self._check_quantity(material, quantity)
        item.quantity = quantity
        await self.commit()
        self.log_write(f"set quantity {quantity} on item {item.id}", "Cart", cart.id, cart.school_id)
        return await self.view(cart.school_id)

    async def remove_item(self, item_id: int) -> Dict[str, Any]:
        item, cart, _ = await self._item(item_id)
        await self.delete(item)
        self.log_write(f"removed item {item_id}", "Cart", cart.id, cart.school_id)
        return await self.view(cart.school_id)

    async def clear(self, school_id: Optional[int] = None) -> Dict[str, Any]:
        school_id = self._school_for_cart(school_id)
        cart = await self._cart(school_id)
        if cart is not None:
            async with self.transaction():
                await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
            self.log_write("cleared", "Cart", cart.id, school_id)
        return await self.view(school_id)


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY_FOR_PICKUP, OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.READY_FOR_PICKUP: {OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

CANCELLABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)


def order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{secrets.token_hex(4).upper()}"


class OrderService(CartService):
    """
    Orders placed from a parent's cart. Prices and names are copied onto the
    order lines; stock is taken only when the school confirms, and returned
    if a confirmed order is cancelled.
    """

    @property
    def is_parent(self) -> bool:
        return self.role == UserRole.PARENT

    async def create_from_cart(self, data: OrderCreateRequest) -> Tuple[MaterialOrder, List[MaterialOrderItem]]:
        school_id = self._school_for_cart(data.school_id)
        cart = await self._cart(school_id)
        rows = []
        if cart is not None:
            rows = (await self.db.execute(
                select(CartItem, Material)
                .join(Material, Material.id == CartItem.material_id)
                .where(CartItem.cart_id == cart.id)
                .order_by(CartItem.id)
            )).all()
        if not rows:
            raise BusinessRuleError("Cart is empty")

        for item, material in rows:
            self._check_quantity(material, item.quantity)

        async with self.transaction():
            order = MaterialOrder(
                school_id=school_id,
                order_number=order_number(),
                parent_id=self.actor_id,
                status=OrderStatus.PENDING.value,
                total_amount=round(sum(material.price * item.quantity for item, material in rows), 2),
                delivery_method=data.delivery_method.value,
                delivery_address=data.delivery_address,
                delivery_notes=data.delivery_notes
            )
            self.db.add(order)
            await self.db.flush()
            lines = [
                MaterialOrderItem(
                    order_id=order.id,
                    material_id=material.id,
                    material_name=material.name,
                    quantity=item.quantity,
                    unit_price=material.price,
                    total_price=round(material.price * item.quantity, 2)
                )
                for item, material in rows
            ]
            self.db.add_all(lines)
            await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))

        self.log_write(f"placed {order.order_number} for {order.total_amount:.2f}", "MaterialOrder", order.id, school_id)
        return order, lines

    async def list_orders(
        self,
        pagination: Pagination,
        status: Optional[OrderStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        school_id: Optional[int] = None
    ):
        """Parents list their own orders; staff list their school's"""
        stmt = select(MaterialOrder)
        if self.is_parent:
            stmt = stmt.where(MaterialOrder.parent_id == self.actor_id)
        if status is not None:
            stmt = stmt.where(MaterialOrder.status == status.value)
        if date_from is not None:
            stmt = stmt.where(MaterialOrder.created_at >= datetime.combine(date_from, time.min))
        if date_to is not None:
            stmt = stmt.where(MaterialOrder.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
        return await self.list_page(
            stmt, MaterialOrder, pagination, ResourceKind.SCHOOL, school_id,
            order_by=[MaterialOrder.created_at.desc(), MaterialOrder.id.desc()]
        )

    async def get_order(self, order_id: int) -> MaterialOrder:
        order = await self.get_visible(MaterialOrder, order_id, ResourceKind.SCHOOL, "Order")
        if self.is_parent and order.parent_id != self.actor_id:
            raise NotFoundError("Order not found")
        return order

    async def order_items(self, order_id: int) -> List[MaterialOrderItem]:
        rows = await self.db.execute(
            select(MaterialOrderItem).where(MaterialOrderItem.order_id == order_id).order_by(MaterialOrderItem.id)
        )
        return list(rows.scalars().all())

    async def _take_stock(self, order: MaterialOrder) -> None:
        for line in await self.order_items(order.id):
            if line.material_id is None:
                raise BusinessRuleError(f"{line.material_name} is no longer available")
            result = await self.db.execute(
                update(Material)
                .where(Material.id == line.material_id, Material.stock_quantity >= line.quantity)
                .values(stock_quantity=Material.stock_quantity - line.quantity)
            )
            if result.rowcount != 1:
                raise BusinessRuleError(
                    f"Not enough {line.material_name} in stock to confirm this order",
                    details={"material_id": line.material_id, "requested": line.quantity}
                )

    async def _return_stock(self, order: MaterialOrder) -> None:
        for line in await self.order_items(order.id):
            if line.material_id is not None:
                await self.db.execute(
                    update(Material)
                    .where(Material.id == line.material_id)
                    .values(stock_quantity=Material.stock_quantity + line.quantity)
                )

    async def _cancel(self, order: MaterialOrder, reason: Optional[str]) -> None:
        if OrderStatus(order.status) == OrderStatus.CONFIRMED:
            await self._return_stock(order)
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = utcnow()
        if reason:
            order.admin_notes = reason

    async def update_status(self, order_id: int, data: OrderStatusUpdateRequest) -> MaterialOrder:
        order = await self.get_order(order_id)
        current = OrderStatus(order.status)
        if data.status not in ORDER_TRANSITIONS[current]:
            raise BusinessRuleError(
                f"Cannot move order from {current.value} to {data.status.value}",
                details={"allowed": sorted(status.value for status in ORDER_TRANSITIONS[current])}
            )

        now = utcnow()
        async with self.transaction():
            if data.status == OrderStatus.CANCELLED:
                await self._cancel(order, data.admin_notes)
            else:
                if data.status == OrderStatus.CONFIRMED:
                    await self._take_stock(order)
                    order.confirmed_at = now
                elif data.status == OrderStatus.PREPARING:
                    order.prepared_at = now
                elif data.status == OrderStatus.DELIVERED:
                    order.delivered_at = now
                order.status = data.status.value
                if data.admin_notes:
                    order.admin_notes = data.admin_notes
        await self.db.refresh(order)
        self.log_write(f"status {current.value} -> {order.status}", "MaterialOrder", order.id, order.school_id)

        await NotificationService(self.db, self.identity).notify(
            [order.parent_id],
            "Order status update",
            f"Your order {order.order_number} status has been updated to {order.status}.",
            category=NotificationType.GENERAL,
            metadata={"order_id": order.id, "status": order.status},
            school_id=order.school_id,
            action_url=f"/materials/orders/{order.id}"
        )
        return order

    async def cancel(self, order_id: int, reason: Optional[str] = None) -> MaterialOrder:
        order = await self.get_order(order_id)
        if OrderStatus(order.status) not in CANCELLABLE:
            raise BusinessRuleError("Order cannot be cancelled at this stage")
        async with self.transaction():
            await self._cancel(order, reason)
        await self.db.refresh(order)
        self.log_write("cancelled", "MaterialOrder", order.id, order.school_id)
        return order
