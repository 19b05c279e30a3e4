from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from shopeasy.deps import CurrentUser, get_app_settings, get_db, require_admin
from shopeasy.schemas import (
    CategoriesResponse,
    ProductCreate,
    ProductListResponse,
    ProductOut,
    ProductPageResponse,
    ProductResponse,
    ProductUpdate,
)
from shopeasy.services import catalog
from shopeasy.shared.security_config import limiter
from shopeasy.shared.utils import Settings, SuccessResponse

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductPageResponse)
@limiter.limit("60/minute")
async def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    keyword: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    docs, count = await catalog.list_products(
        db,
        page=page,
        page_size=settings.PAGE_SIZE,
        keyword=keyword,
        category=category,
        min_price=min_price,
        max_price=max_price,
    )
    return ProductPageResponse(
        products=[ProductOut.from_doc(doc, settings.IMAGE_BASE_URL) for doc in docs],
        page=page,
        pages=catalog.page_count(count, settings.PAGE_SIZE),
        count=count,
    )


@router.get("/featured", response_model=ProductListResponse)
async def featured_products(
    limit: Optional[int] = Query(None, ge=1, le=50),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    docs = await catalog.list_featured(db, limit or settings.FEATURED_LIMIT)
    return ProductListResponse(products=[ProductOut.from_doc(doc, settings.IMAGE_BASE_URL) for doc in docs])


@router.get("/categories", response_model=CategoriesResponse)
async def categories(db=Depends(get_db)):
    return CategoriesResponse(categories=await catalog.list_categories(db))


@router.get("/{product_id}", response_model=ProductResponse)
async def read_product(product_id: str, db=Depends(get_db), settings: Settings = Depends(get_app_settings)):
    doc = await catalog.get_product(db, product_id)
    return ProductResponse(product=ProductOut.from_doc(doc, settings.IMAGE_BASE_URL))


# --- Admin ---

@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    data: ProductCreate,
    _: CurrentUser = Depends(require_admin),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    doc = await catalog.create_product(db, data)
    return ProductResponse(message="Product created", product=ProductOut.from_doc(doc, settings.IMAGE_BASE_URL))


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    _: CurrentUser = Depends(require_admin),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    doc = await catalog.update_product(db, product_id, data)
    return ProductResponse(message="Product updated", product=ProductOut.from_doc(doc, settings.IMAGE_BASE_URL))


@router.delete("/{product_id}", response_model=SuccessResponse)
async def delete_product(product_id: str, _: CurrentUser = Depends(require_admin), db=Depends(get_db)):
    await catalog.delete_product(db, product_id)
    return SuccessResponse(message="Product removed")
