from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import (
    require_any_role,
    require_parent,
    require_school_staff,
    require_school_staff_or_parent
)
from school_api.core.tenancy import Identity
from school_api.schemas.enums import OrderStatus
from school_api.schemas.material import (
    CartItemRequest,
    CartItemUpdateRequest,
    CartResponse,
    CategoryCreateRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    MaterialCreateRequest,
    MaterialResponse,
    MaterialUpdateRequest,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderItemResponse,
    OrderResponse,
    OrderStatusUpdateRequest
)
from school_api.services.material_service import CartService, MaterialService, OrderService

router = APIRouter(tags=["Materials"])


# Categories

@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    category = await MaterialService(db, identity).create_category(data)
    return {"message": "Category created", "category": CategoryResponse.model_validate(category)}


@router.get("/categories")
async def list_categories(
    is_active: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    categories, meta = await MaterialService(db, identity).list_categories(pagination, is_active, school_id)
    return {
        "message": "Categories retrieved",
        "categories": [CategoryResponse.model_validate(category) for category in categories],
        "pagination": meta
    }


@router.get("/categories/{category_id}")
async def get_category(
    category_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    category = await MaterialService(db, identity).get_category(category_id)
    return {"message": "Category retrieved", "category": CategoryResponse.model_validate(category)}


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    category = await MaterialService(db, identity).update_category(category_id, data)
    return {"message": "Category updated", "category": CategoryResponse.model_validate(category)}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await MaterialService(db, identity).delete_category(category_id)
    return {"message": "Category deleted"}


# Cart; declared before /{material_id} so the path is not read as an id

@router.get("/cart")
async def view_cart(
    school_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cart = await CartService(db, identity).view(school_id)
    return {"message": "Cart retrieved", "cart": CartResponse.model_validate(cart)}


@router.post("/cart/items", status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    data: CartItemRequest,
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cart = await CartService(db, identity).add_item(data)
    return {"message": "Item added to cart", "cart": CartResponse.model_validate(cart)}


@router.patch("/cart/items/{item_id}")
async def update_cart_item(
    item_id: int,
    data: CartItemUpdateRequest,
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cart = await CartService(db, identity).update_item(item_id, data.quantity)
    return {"message": "Cart item updated", "cart": CartResponse.model_validate(cart)}


@router.delete("/cart/items/{item_id}")
async def remove_cart_item(
    item_id: int,
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cart = await CartService(db, identity).remove_item(item_id)
    return {"message": "Item removed from cart", "cart": CartResponse.model_validate(cart)}


@router.delete("/cart")
async def clear_cart(
    school_id: Optional[int] = Query(None),
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    cart = await CartService(db, identity).clear(school_id)
    return {"message": "Cart cleared", "cart": CartResponse.model_validate(cart)}


# Orders

@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(
    data: OrderCreateRequest,
    identity: Identity = Depends(require_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    order, items = await OrderService(db, identity).create_from_cart(data)
    return {
        "message": "Order placed",
        "order": OrderResponse.model_validate(order),
        "items": [OrderItemResponse.model_validate(item) for item in items]
    }


@router.get("/orders")
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_school_staff_or_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    orders, meta = await OrderService(db, identity).list_orders(pagination, status_filter, date_from, date_to, school_id)
    return {
        "message": "Orders retrieved",
        "orders": [OrderResponse.model_validate(order) for order in orders],
        "pagination": meta
    }


@router.get("/orders/{order_id}")
async def get_order(
    order_id: int,
    identity: Identity = Depends(require_school_staff_or_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = OrderService(db, identity)
    order = await service.get_order(order_id)
    items = await service.order_items(order.id)
    return {
        "message": "Order retrieved",
        "order": OrderResponse.model_validate(order),
        "items": [OrderItemResponse.model_validate(item) for item in items]
    }


@router.patch("/orders/{order_id}/status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    order = await OrderService(db, identity).update_status(order_id, data)
    return {"message": "Order status updated", "order": OrderResponse.model_validate(order)}


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    data: OrderCancelRequest,
    identity: Identity = Depends(require_school_staff_or_parent()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    order = await OrderService(db, identity).cancel(order_id, data.reason)
    return {"message": "Order cancelled", "order": OrderResponse.model_validate(order)}


# Materials

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_material(
    data: MaterialCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    material = await MaterialService(db, identity).create_material(data)
    return {"message": "Material created", "material": MaterialResponse.model_validate(material)}


@router.get("")
async def list_materials(
    category_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    in_stock: Optional[bool] = Query(None),
    is_active: Optional[bool] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    materials, meta = await MaterialService(db, identity).list_materials(
        pagination, category_id, search, in_stock, is_active, school_id
    )
    return {
        "message": "Materials retrieved",
        "materials": [MaterialResponse.model_validate(material) for material in materials],
        "pagination": meta
    }


@router.get("/{material_id}")
async def get_material(
    material_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    material = await MaterialService(db, identity).get_material(material_id)
    return {"message": "Material retrieved", "material": MaterialResponse.model_validate(material)}


@router.patch("/{material_id}")
async def update_material(
    material_id: int,
    data: MaterialUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    material = await MaterialService(db, identity).update_material(material_id, data)
    return {"message": "Material updated", "material": MaterialResponse.model_validate(material)}


@router.delete("/{material_id}")
async def delete_material(
    material_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await MaterialService(db, identity).delete_material(material_id)
    return {"message": "Material deleted"}
