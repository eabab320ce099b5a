"""
api/routes/v1/products.py -- Product catalog routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /products               -- list, optional ?category= and ?sort=asc|desc
  GET    /products/{product_id}  -- detail
  POST   /products               -- create (OWNER only)
  PATCH  /products/{product_id}  -- update (OWNER only)
  DELETE /products/{product_id}  -- delete (OWNER only)

Reads need any authenticated identity; writes need the OWNER role. The
creating identity is stamped onto the product as owner_id, taken from the
token's claims -- never from the request body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.models import ProductCreate, ProductPatch, ProductResponse, SortEnum
from auth.dependencies import require_identity, require_owner
from auth.models import Claims
from catalog.errors import ProductNotFound
from catalog.models import Product
from catalog.store import ProductStore

logger = logging.getLogger("shopgate.catalog")

# Every catalog route requires authentication. Write routes add the OWNER
# role check on top through require_owner.
router = APIRouter(dependencies=[Depends(require_identity)])


@router.get("/products", response_model=list[ProductResponse])
def list_products(
    request: Request,
    category: Optional[str] = None,
    sort: Optional[SortEnum] = None,
) -> list[ProductResponse]:
    catalog: ProductStore = request.app.state.catalog
    products = catalog.list_products(category=category, sort=sort.value if sort else None)
    return [ProductResponse.from_product(p) for p in products]


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(request: Request, product_id: int) -> ProductResponse:
    catalog: ProductStore = request.app.state.catalog
    product = catalog.get_product(product_id)
    if product is None:
        raise ProductNotFound()
    return ProductResponse.from_product(product)


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: Request,
    body: ProductCreate,
    claims: Claims = Depends(require_owner),
) -> ProductResponse:
    catalog: ProductStore = request.app.state.catalog
    product_id = catalog.create_product(
        Product(
            name=body.name,
            price=body.price,
            category=body.category,
            description=body.description,
            owner_id=claims.subject_id,
        )
    )
    logger.info("Product %d created by %s", product_id, claims.subject_id)
    return ProductResponse.from_product(catalog.get_product(product_id))


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(
    request: Request,
    product_id: int,
    body: ProductPatch,
    claims: Claims = Depends(require_owner),
) -> ProductResponse:
    catalog: ProductStore = request.app.state.catalog
    updates = body.model_dump(exclude_none=True)
    if updates:
        found = catalog.update_product(product_id, **updates)
    else:
        found = catalog.get_product(product_id) is not None
    if not found:
        raise ProductNotFound()
    logger.info("Product %d updated by %s (%s)", product_id, claims.subject_id, ", ".join(sorted(updates)))
    return ProductResponse.from_product(catalog.get_product(product_id))


@router.delete("/products/{product_id}", status_code=204)
def delete_product(
    request: Request,
    product_id: int,
    claims: Claims = Depends(require_owner),
) -> Response:
    catalog: ProductStore = request.app.state.catalog
    if not catalog.delete_product(product_id):
        raise ProductNotFound()
    logger.info("Product %d deleted by %s", product_id, claims.subject_id)
    return Response(status_code=204)
