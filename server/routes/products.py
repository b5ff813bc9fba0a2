"""In-memory product list with create/list/delete endpoints."""

from __future__ import annotations

import asyncio
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)


class Product(ProductIn):
    id: int


class ProductStore:
    """Process-local product list; contents are lost on restart."""

    def __init__(self, products: List[Product] | None = None) -> None:
        self._products: List[Product] = list(products or [])
        self._next_id = max((product.id for product in self._products), default=0) + 1
        self._lock = asyncio.Lock()

    async def items(self) -> List[Product]:
        async with self._lock:
            return list(self._products)

    async def add(self, payload: ProductIn) -> Product:
        async with self._lock:
            product = Product(id=self._next_id, **payload.model_dump())
            self._next_id += 1
            self._products.append(product)
            return product

    async def delete(self, product_id: int) -> bool:
        async with self._lock:
            for index, product in enumerate(self._products):
                if product.id == product_id:
                    del self._products[index]
                    return True
            return False


def get_store(request: Request) -> ProductStore:
    return request.app.state.products


@router.get("", response_model=List[Product])
async def list_products(store: ProductStore = Depends(get_store)) -> List[Product]:
    return await store.items()


@router.post("", response_model=Product, status_code=201)
async def create_product(payload: ProductIn, store: ProductStore = Depends(get_store)) -> Product:
    product = await store.add(payload)
    logger.info("products.created", product_id=product.id, name=product.name)
    return product


@router.delete("")
async def delete_product(
    product_id: int = Query(..., alias="id"), store: ProductStore = Depends(get_store)
) -> dict[str, int]:
    if not await store.delete(product_id):
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    logger.info("products.deleted", product_id=product_id)
    return {"deleted": product_id}
