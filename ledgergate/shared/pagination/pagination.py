"""Pagination query parameters for list endpoints."""

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Query parameters for pagination.

    Can be used as dependency in FastAPI routes:
    ```python
    @router.get("/invite-codes")
    async def list_invite_codes(pagination: PaginationParams = Depends()):
        stmt = stmt.offset(pagination.skip).limit(pagination.limit)
    ```

    Clients can disable pagination by sending an empty `page`.
    """

    page: int | None = Field(default=1, ge=1, description="Page number (1-indexed). Set to None to disable pagination")

    page_size: int | None = Field(
        default=50, ge=1, le=1000, description="Items per page. Set to None to disable pagination"
    )

    @property
    def skip(self) -> int:
        """Calculate skip/offset for database query."""
        if self.page is None or self.page_size is None:
            return 0
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int | None:
        """Calculate limit for database query (None = no limit)."""
        return self.page_size

    @property
    def is_paginated(self) -> bool:
        return self.page is not None and self.page_size is not None


__all__ = ["PaginationParams"]
