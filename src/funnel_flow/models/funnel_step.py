from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, Field


class FunnelStep(BaseModel):
    """Persisted funnel step as handed to the structural checks."""

    id: str | None = None
    name: str | None = None
    order_index: int = 0
    step_type: str
    step_intent: str | None = None
    content: Mapping[str, Any] = Field(default_factory=dict)


__all__ = ["FunnelStep"]
