"""
Catalog endpoints: products and categories.

Any authenticated caller may browse; customers only ever see active rows.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, get_principal, pagination_params, require_permission
from domain.enums import Permission
from domain.responses import paginated_response, success_response
from middleware.auth import Principal
from models import (
    CategoryCreateRequest,
    CategoryUpdateRequest,
    ProductCreateRequest,
    ProductUpdateRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["catalog"])


# ── Products ────────────────────────────────────────────────────────


@router.get("/products")
async def list_products(
    category_id: Optional[int] = Query(None, alias="categoryId"),
    search: Optional[str] = Query(None, max_length=200),
    active_only: bool = Query(False, alias="activeOnly"),
    page: Pagination = Depends(pagination_params),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import product_service

    products, total = await product_service.list_products(
        db,
        active_only=active_only or principal.is_customer,
        category_id=category_id,
        search=search,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        [product_service.serialize_product(p) for p in products],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


@router.post("/products", status_code=201)
async def create_product(
    request: ProductCreateRequest,
    _principal: Principal = Depends(require_permission(Permission.CREATE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import product_service

    product = await product_service.create_product(
        db,
        name=request.name,
        price=request.price,
        stock=request.stock,
        description=request.description,
        category_id=request.category_id,
        image_url=request.image_url,
        sort_order=request.sort_order,
        is_active=request.is_active,
    )
    await db.commit()
    logger.info(f"Product created: id={product.id}")
    return success_response(data=product_service.serialize_product(product))


@router.get("/products/{product_id}")
async def get_product(
    product_id: int,
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import product_service

    product = await product_service.get_product(db, product_id=product_id, active_only=principal.is_customer)
    return success_response(data=product_service.serialize_product(product))


@router.put("/products/{product_id}")
async def update_product(
    product_id: int,
    request: ProductUpdateRequest,
    _principal: Principal = Depends(require_permission(Permission.EDIT_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import product_service

    product = await product_service.update_product(db, product_id=product_id, changes=request.changes())
    await db.commit()
    return success_response(data=product_service.serialize_product(product))


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: int,
    _principal: Principal = Depends(require_permission(Permission.DELETE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import product_service

    await product_service.delete_product(db, product_id=product_id)
    await db.commit()
    logger.info(f"Product deleted: id={product_id}")
    return success_response(data={"id": product_id, "deleted": True})


# ── Categories ──────────────────────────────────────────────────────


@router.get("/categories")
async def list_categories(
    active_only: bool = Query(False, alias="activeOnly"),
    principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import category_service

    rows = await category_service.list_categories(db, active_only=active_only or principal.is_customer)
    return success_response(
        data=[category_service.serialize_category(c, product_count=n) for c, n in rows],
        meta={"total": len(rows)},
    )


@router.post("/categories", status_code=201)
async def create_category(
    request: CategoryCreateRequest,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import category_service

    category = await category_service.create_category(
        db,
        name=request.name,
        description=request.description,
        category_type=request.category_type,
        sort_order=request.sort_order,
        is_active=request.is_active,
    )
    await db.commit()
    return success_response(data=category_service.serialize_category(category, product_count=0))


@router.get("/categories/{category_id}")
async def get_category(
    category_id: int,
    _principal: Principal = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
):
    from services import category_service

    category = await category_service.get_category(db, category_id=category_id)
    return success_response(data=category_service.serialize_category(category))


@router.put("/categories/{category_id}")
async def update_category(
    category_id: int,
    request: CategoryUpdateRequest,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import category_service

    category = await category_service.update_category(db, category_id=category_id, changes=request.changes())
    await db.commit()
    return success_response(data=category_service.serialize_category(category))


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: int,
    _principal: Principal = Depends(require_permission(Permission.MANAGE_PRODUCTS)),
    db: AsyncSession = Depends(get_db),
):
    from services import category_service

    await category_service.delete_category(db, category_id=category_id)
    await db.commit()
    return success_response(data={"id": category_id, "deleted": True})
