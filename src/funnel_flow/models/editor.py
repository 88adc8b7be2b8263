from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EditorPageType(str, Enum):
    landing = "landing"
    optin = "optin"
    appointment = "appointment"
    thank_you = "thank_you"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


class CanvasNode(BaseModel):
    """Untyped recursive node of the stored editor tree."""

    id: str = ""
    type: str = ""
    props: dict[str, Any] = Field(default_factory=dict)
    children: list[CanvasNode] = Field(default_factory=list)

    @field_validator("id", "type", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("props", mode="before")
    @classmethod
    def _normalize_props(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("children", mode="before")
    @classmethod
    def _normalize_children(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [child for child in value if isinstance(child, (dict, CanvasNode))]


class EditorPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str = ""
    type: EditorPageType = EditorPageType.landing
    canvas_root: CanvasNode | None = Field(default=None, alias="canvasRoot")

    @field_validator("id", "name", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        try:
            return EditorPageType(value)
        except ValueError:
            return EditorPageType.landing

    @field_validator("canvas_root", mode="before")
    @classmethod
    def _normalize_root(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, CanvasNode)) else None


class EditorDocument(BaseModel):
    """Storage format: one editor page per funnel step."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    pages: list[EditorPage] = Field(default_factory=list)
    active_page_id: str = Field(default="", alias="activePageId")

    @field_validator("version", mode="before")
    @classmethod
    def _normalize_version(cls, value: Any) -> int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        return 1

    @field_validator("pages", mode="before")
    @classmethod
    def _normalize_pages(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [page for page in value if isinstance(page, (dict, EditorPage))]

    @field_validator("active_page_id", mode="before")
    @classmethod
    def _normalize_active_page(cls, value: Any) -> str:
        return _as_text(value)


__all__ = ["CanvasNode", "EditorDocument", "EditorPage", "EditorPageType"]
