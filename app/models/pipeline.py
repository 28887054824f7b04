"""Pydantic models for the board and contract-preview JSON endpoints."""

from typing import Optional

from pydantic import BaseModel, Field


class TransitionRequest(BaseModel):
    """A card dropped from one column into another."""

    from_state: str = Field(..., min_length=1, max_length=32)
    to_state: str = Field(..., min_length=1, max_length=32)


class TransitionResponse(BaseModel):
    ok: bool
    kind: str
    entity_id: int
    from_state: str
    to_state: str
    changed: bool
    refetch: list[str] = Field(default_factory=list)
    error: Optional[str] = Field(default=None)
    message: Optional[str] = Field(default=None)
    redirect: Optional[str] = Field(default=None)


class ContractPreviewResponse(BaseModel):
    """Live figures for the contract form."""

    commission: Optional[str] = Field(default=None)
    commission_display: Optional[str] = Field(default=None)
    value_display: Optional[str] = Field(default=None)
    is_active: Optional[bool] = Field(default=None)
    suggest_retroactive: bool = False
