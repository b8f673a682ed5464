"""
Hosted catalogue and order collections.

Thin pymongo adapters: every driver failure, and a missing database,
surfaces as CollaboratorError so the caller can leave local state alone and
let the user retry.
"""
import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from database import create_document, get_documents
from errors import CollaboratorError
from schemas import Order, OrderStatus, Product, ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

QUICK_SEARCH_LIMIT = 5
SEARCH_FIELDS = ("name", "brand", "category")


def serialize_doc(doc):
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    # convert datetimes
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


def to_object_id(id_str: str) -> Optional[ObjectId]:
    if id_str is None:
        return None
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


@contextmanager
def collaborator_call(operation: str):
    try:
        yield
    except PyMongoError as exc:
        logger.warning("Hosted store call failed", extra={"operation": operation, "error": str(exc)})
        raise CollaboratorError(f"{operation} failed, please try again") from exc


class HostedCollection:
    collection_name = ""

    def __init__(self, database):
        self.database = database

    @property
    def connected(self):
        if self.database is None:
            raise CollaboratorError("Database not available")
        return self.database

    @property
    def collection(self):
        return self.connected[self.collection_name]


class CatalogStore(HostedCollection):
    collection_name = "product"

    def fetch_all(self, limit: Optional[int] = None) -> List[Product]:
        with collaborator_call("fetch products"):
            docs = get_documents(self.collection_name, limit=limit, database=self.connected)
        return [Product.model_validate(serialize_doc(d)) for d in docs]

    def fetch_by_id(self, product_id: str) -> Optional[Product]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        with collaborator_call("fetch product"):
            doc = self.collection.find_one({"_id": oid})
        return Product.model_validate(serialize_doc(doc)) if doc else None

    def search(self, term: str, limit: int = QUICK_SEARCH_LIMIT) -> List[Product]:
        pattern = {"$regex": re.escape(term.strip()), "$options": "i"}
        query = {"$or": [{field: pattern} for field in SEARCH_FIELDS]}
        with collaborator_call("search products"):
            docs = list(self.collection.find(query).limit(limit))
        return [Product.model_validate(serialize_doc(d)) for d in docs]

    def count(self) -> int:
        with collaborator_call("count products"):
            return self.collection.count_documents({})

    def insert(self, body: ProductCreate) -> Product:
        with collaborator_call("insert product"):
            pid = create_document(self.collection_name, body, database=self.connected)
        return Product(id=pid, **body.model_dump())

    def update(self, product_id: str, body: ProductUpdate) -> Optional[Product]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        update = body.model_dump(exclude_none=True)
        update["updated_at"] = datetime.now(timezone.utc)
        with collaborator_call("update product"):
            res = self.collection.update_one({"_id": oid}, {"$set": update})
        if res.matched_count == 0:
            return None
        return self.fetch_by_id(product_id)

    def delete(self, product_id: str) -> bool:
        oid = to_object_id(product_id)
        if oid is None:
            return False
        with collaborator_call("delete product"):
            res = self.collection.delete_one({"_id": oid})
        return res.deleted_count > 0


class OrderStore(HostedCollection):
    collection_name = "order"

    def insert(self, order: Order) -> str:
        with collaborator_call("insert order"):
            return create_document(self.collection_name, order, database=self.connected)

    def _orders(self, query: dict) -> List[Order]:
        with collaborator_call("fetch orders"):
            docs = get_documents(self.collection_name, query, database=self.connected)
        return [Order.model_validate(serialize_doc(d)) for d in docs]

    def fetch_all(self) -> List[Order]:
        return self._orders({})

    def fetch_by_email(self, email: str) -> List[Order]:
        return self._orders({"customer_email": email})

    def update_status(self, order_id: str, status: OrderStatus) -> bool:
        oid = to_object_id(order_id)
        if oid is None:
            return False
        with collaborator_call("update order"):
            res = self.collection.update_one(
                {"_id": oid},
                {"$set": {"status": status, "updated_at": datetime.now(timezone.utc)}},
            )
        return res.matched_count > 0
