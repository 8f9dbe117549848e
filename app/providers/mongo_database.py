import logging
import math
import re
import uuid
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from app.core.constants import USER_PROFILES
from app.core.exceptions import DatabaseError
from app.db.mongo import MongoDB, USER_PROFILES_VIEW
from app.providers.database import DatabaseProvider, PaginatedResult, PaginationOptions

logger = logging.getLogger(__name__)

# Logical table names that are served from a different collection.
TABLE_REDIRECTS = {
    USER_PROFILES: USER_PROFILES_VIEW,
}

# Records are addressed by their string `id`; Mongo's ObjectId never leaves the provider.
PROJECTION = {"_id": 0}


class MongoDatabaseProvider(DatabaseProvider):
    """DatabaseProvider backed by MongoDB through Motor."""

    def __init__(self, mongo: MongoDB):
        self.mongo = mongo

    async def get_collection(self, table: str):
        if self.mongo.db is None:
            await self.mongo.connect_to_database()
        return self.mongo.db[TABLE_REDIRECTS.get(table, table)]

    async def query(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        collection = await self.get_collection(table)
        try:
            cursor = collection.find(dict(filters or {}), PROJECTION)
            return [doc async for doc in cursor]
        except PyMongoError as e:
            raise DatabaseError(f"Database query error: {e}") from e

    async def query_with_pagination(self, table: str, options: PaginationOptions) -> PaginatedResult:
        collection = await self.get_collection(table)
        criteria: Dict[str, Any] = dict(options.filters or {})
        if options.search_column and options.search_term:
            criteria[options.search_column] = {
                "$regex": re.escape(options.search_term),
                "$options": "i",
            }

        try:
            total = await collection.count_documents(criteria)
            cursor = collection.find(criteria, PROJECTION)
            if options.order_by:
                direction = DESCENDING if options.order_direction == "desc" else ASCENDING
                cursor = cursor.sort(options.order_by, direction)
            cursor = cursor.skip((options.page - 1) * options.page_size).limit(options.page_size)
            data = [doc async for doc in cursor]
        except PyMongoError as e:
            raise DatabaseError(f"Database paginated query error: {e}") from e

        return PaginatedResult(
            data=data,
            total=total,
            page=options.page,
            page_size=options.page_size,
            total_pages=math.ceil(total / options.page_size),
        )

    async def get_by_id(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        collection = await self.get_collection(table)
        try:
            return await collection.find_one({"id": record_id}, PROJECTION)
        except PyMongoError as e:
            raise DatabaseError(f"Database getById error: {e}") from e

    async def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        collection = await self.get_collection(table)
        record = {"id": str(uuid.uuid4()), **data}
        try:
            await collection.insert_one(record)
        except PyMongoError as e:
            raise DatabaseError(f"Database insert error: {e}") from e
        # insert_one adds the ObjectId to the dict it was given
        record.pop("_id", None)
        return record

    async def update(self, table: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        collection = await self.get_collection(table)
        try:
            updated = await collection.find_one_and_update(
                {"id": record_id},
                {"$set": data},
                projection=PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise DatabaseError(f"Database update error: {e}") from e
        if updated is None:
            raise DatabaseError(f"Database update error: no record '{record_id}' in {table}")
        return updated

    async def delete(self, table: str, record_id: str) -> None:
        collection = await self.get_collection(table)
        try:
            await collection.delete_one({"id": record_id})
        except PyMongoError as e:
            raise DatabaseError(f"Database delete error: {e}") from e

    async def increment(
        self,
        table: str,
        filters: Dict[str, Any],
        field: str,
        amount: float = 1,
    ) -> Dict[str, Any]:
        collection = await self.get_collection(table)
        try:
            return await collection.find_one_and_update(
                dict(filters),
                {
                    "$inc": {field: amount},
                    "$setOnInsert": {"id": str(uuid.uuid4())},
                },
                projection=PROJECTION,
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise DatabaseError(f"Database increment error: {e}") from e

    async def raw(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if self.mongo.db is None:
            await self.mongo.connect_to_database()
        try:
            return await self.mongo.db.command(query, **(params or {}))
        except PyMongoError as e:
            raise DatabaseError(f"Database raw query error: {e}") from e
