"""
MongoDB access for the storefront.

The connection is configured from DATABASE_URL / DATABASE_NAME. When either is
missing `db` stays None and callers get a clear error instead of a hang.
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

load_dotenv()

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def get_db():
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with created_at / updated_at timestamps, return its id."""
    database = get_db()
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True, exclude_none=False)
    else:
        data_dict = data.copy()

    stamp = now_utc()
    data_dict.setdefault("createdAt", stamp)
    data_dict["updatedAt"] = stamp

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, sort: Optional[List] = None) -> List[Dict[str, Any]]:
    database = get_db()
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def count_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> int:
    return get_db()[collection_name].count_documents(filter_dict or {})


def next_sequence(name: str, seed: int = 0) -> int:
    """
    Atomically allocate the next number of a named sequence.

    The counter document is created on first use starting at `seed`, so the
    first allocated value is seed + 1.
    """
    counters = get_db()["counters"]
    try:
        counters.update_one({"_id": name}, {"$setOnInsert": {"seq": seed}}, upsert=True)
    except DuplicateKeyError:
        # another request created the counter first
        pass
    doc = counters.find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["seq"])


def ensure_indexes() -> None:
    database = get_db()
    database["orders"].create_index("orderId", unique=True, sparse=True)
    database["orders"].create_index([("createdAt", -1)])
    database["orders"].create_index("userId")
    database["wishlist"].create_index("userId")
