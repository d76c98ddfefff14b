from __future__ import annotations
import logging
import os
from typing import Any, Optional, Protocol
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import DESCENDING
from pymongo.errors import PyMongoError
from pydantic import ValidationError
from pydantic_settings import BaseSettings
from bson import ObjectId
from bson.errors import InvalidId
from datetime import datetime, timezone

from schemas import Product, OrderHeader, OrderLineItem

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    DATABASE_URL: str = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "parfum_store")
    CURRENCY: str = "UAH"
    CATALOG_LIMIT: int = 200
    CHECKOUT_DISMISS_DELAY: float = 2.0
    SESSION_TTL: float = 3600.0
    LOG_LEVEL: str = "INFO"

settings = Settings()

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


class RemoteQueryError(Exception):
    """Reading from the remote store failed."""


class RemoteWriteError(Exception):
    """Writing to the remote store failed."""


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db

def _with_meta(data: dict[str, Any]) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {**data, "created_at": now, "updated_at": now}

def _to_client(doc: dict[str, Any]) -> dict[str, Any]:
    doc["id"] = str(doc.pop("_id"))
    return doc

async def create_document(collection_name: str, data: dict[str, Any]) -> dict[str, Any]:
    db = await get_db()
    result = await db[collection_name].insert_one(_with_meta(data))
    inserted = await db[collection_name].find_one({"_id": result.inserted_id})
    if inserted and "_id" in inserted:
        inserted = _to_client(inserted)
    return inserted or {}

async def create_documents(collection_name: str, rows: list[dict[str, Any]]) -> list[str]:
    if not rows:
        return []
    db = await get_db()
    result = await db[collection_name].insert_many([_with_meta(r) for r in rows])
    return [str(i) for i in result.inserted_ids]

async def get_documents(
    collection_name: str,
    filter_dict: dict[str, Any] | None = None,
    limit: int = 100,
    sort: list[tuple[str, int]] | None = None,
) -> list[dict[str, Any]]:
    db = await get_db()
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    cursor = cursor.limit(limit)
    docs = []
    async for d in cursor:
        docs.append(_to_client(d))
    return docs

async def delete_document(collection_name: str, document_id: str) -> bool:
    try:
        _id = ObjectId(document_id)
    except InvalidId:
        return False
    db = await get_db()
    result = await db[collection_name].delete_one({"_id": _id})
    return result.deleted_count == 1


class RemoteStore(Protocol):
    async def fetch_products(self) -> list[Product]: ...

    async def create_order(self, header: OrderHeader) -> str: ...

    async def create_order_line_items(self, items: list[OrderLineItem]) -> None: ...

    async def delete_order(self, order_id: str) -> None: ...


class MongoStore:
    """
    Remote store backed by MongoDB.

    Collections follow the lowercased model name convention:
    - Product -> "product"
    - Order -> "order"
    - OrderLineItem -> "order_item"
    """

    async def fetch_products(self) -> list[Product]:
        try:
            docs = await get_documents(
                "product",
                limit=settings.CATALOG_LIMIT,
                sort=[("popularity_score", DESCENDING)],
            )
        except PyMongoError as e:
            raise RemoteQueryError(str(e)) from e
        products = []
        for d in docs:
            try:
                products.append(Product(**d))
            except ValidationError:
                logger.warning("Skipping invalid product document %s", d.get("id"), exc_info=True)
        return products

    async def create_order(self, header: OrderHeader) -> str:
        try:
            saved = await create_document("order", header.model_dump(mode="json"))
        except PyMongoError as e:
            raise RemoteWriteError(str(e)) from e
        if not saved.get("id"):
            raise RemoteWriteError("order insert returned no id")
        return saved["id"]

    async def create_order_line_items(self, items: list[OrderLineItem]) -> None:
        try:
            await create_documents("order_item", [i.model_dump(mode="json") for i in items])
        except PyMongoError as e:
            raise RemoteWriteError(str(e)) from e

    async def delete_order(self, order_id: str) -> None:
        try:
            deleted = await delete_document("order", order_id)
        except PyMongoError as e:
            raise RemoteWriteError(str(e)) from e
        if not deleted:
            logger.warning("Order %s was not found for deletion", order_id)
