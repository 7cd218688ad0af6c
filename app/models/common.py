"""
Shared API Models
"""
from typing import Any, Optional
from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Caller identity established by the upstream auth layer"""
    id: str = Field(..., description="Authenticated user ID")
    isAdmin: bool = Field(default=False, description="Privileged caller")

    def can_access(self, owner_id: str) -> bool:
        return self.isAdmin or self.id == owner_id


class ApiResponse(BaseModel):
    """Envelope used by every session endpoint"""
    success: bool = Field(..., description="Whether the call succeeded")
    data: Optional[Any] = Field(default=None, description="Payload on success")
    statusMessage: Optional[str] = Field(default=None, description="Human-readable error")


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    hasNext: bool
    hasPrev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=(total + limit - 1) // limit if limit else 0,
            hasNext=page * limit < total,
            hasPrev=page > 1,
        )
