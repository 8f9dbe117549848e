"""
Database provider interface.

Services talk to storage only through this interface so the backing store
can be replaced without touching business logic.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PaginationOptions(BaseModel):
    """Options for a paginated read."""
    page: int = Field(default=1, ge=1, description="1-indexed page number")
    page_size: int = Field(default=20, ge=1, le=500)
    filters: Optional[Dict[str, Any]] = Field(default=None, description="Exact-match equality filters")
    search_column: Optional[str] = None
    search_term: Optional[str] = None
    order_by: Optional[str] = None
    order_direction: Literal["asc", "desc"] = "asc"


class PaginatedResult(BaseModel):
    """One page of records plus totals computed from a server-side count."""
    data: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int


class DatabaseProvider(ABC):

    @abstractmethod
    async def query(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Return every record in `table` matching all `filters` exactly."""

    @abstractmethod
    async def query_with_pagination(self, table: str, options: PaginationOptions) -> PaginatedResult:
        """Return one page of `table` with filters, search and ordering applied."""

    @abstractmethod
    async def get_by_id(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the record with `record_id`, or None when it does not exist."""

    @abstractmethod
    async def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored."""

    @abstractmethod
    async def update(self, table: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update and return the updated record."""

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> None:
        """Delete a record by id."""

    @abstractmethod
    async def increment(
        self,
        table: str,
        filters: Dict[str, Any],
        field: str,
        amount: float = 1,
    ) -> Dict[str, Any]:
        """
        Atomically add `amount` to `field` on the record matching `filters`.

        When no record matches, one is created from `filters` with
        `field` set to `amount`. Returns the record after the increment.
        """

    @abstractmethod
    async def raw(self, query: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a provider-specific command."""
