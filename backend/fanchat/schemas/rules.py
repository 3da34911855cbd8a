"""Schemas for fan group chat rules."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, constr

from fanchat.models import RuleSeverity


class ChatRuleCreate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=128)
    description: constr(strip_whitespace=True, min_length=1, max_length=2000)
    icon: str | None = Field(default=None, max_length=64)
    severity: RuleSeverity = RuleSeverity.INFO


class ChatRuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    icon: str | None = None
    severity: RuleSeverity
    position: int = 0


class RulesBookRead(BaseModel):
    """Rules of a fan group and whether the caller has accepted them."""

    group_id: int
    version: int
    rules: list[ChatRuleRead]
    accepted: bool = False
    accepted_at: datetime | None = None
