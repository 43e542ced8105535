"""Ledger record and event schemas."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class CutAction(IntEnum):
    ADD = 0
    REPLACE = 1
    REMOVE = 2


class ProvisioningRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    creator: str
    primary_address: str
    is_registered: bool = True


class SelectorRoute(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    selector: str
    module: str


class FacetCut(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    module: str
    action: CutAction
    selectors: List[str] = Field(..., min_length=1)


class LedgerEvent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    emitter: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    sequence: int = Field(..., ge=0)
