from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)


class StepIntent(str, Enum):
    capture = "capture"
    collect = "collect"
    schedule = "schedule"
    complete = "complete"


class StepType(str, Enum):
    form = "form"
    content = "content"
    quiz = "quiz"
    booking = "booking"
    checkout = "checkout"
    thankyou = "thankyou"


class SubmitMode(str, Enum):
    next = "next"
    submit = "submit"
    redirect = "redirect"
    custom = "custom"


class StackDirection(str, Enum):
    vertical = "vertical"
    horizontal = "horizontal"


class FrameLayout(str, Enum):
    contained = "contained"
    full_width = "full-width"


class BlockType(str, Enum):
    hero = "hero"
    form_field = "form-field"
    cta = "cta"
    testimonial = "testimonial"
    media = "media"
    text_block = "text-block"
    custom = "custom"
    booking = "booking"
    application_flow = "application-flow"
    feature = "feature"
    pricing = "pricing"
    faq = "faq"
    about = "about"
    team = "team"
    trust = "trust"
    logo_bar = "logo-bar"
    footer = "footer"
    contact = "contact"
    credibility_bar = "credibility-bar"
    stats_row = "stats-row"
    process_flow = "process-flow"
    urgency_banner = "urgency-banner"
    ticker_bar = "ticker-bar"
    video_hero = "video-hero"
    split_hero = "split-hero"
    guarantee = "guarantee"


class ElementType(str, Enum):
    text = "text"
    heading = "heading"
    button = "button"
    input = "input"
    select = "select"
    checkbox = "checkbox"
    radio = "radio"
    image = "image"
    video = "video"
    divider = "divider"
    spacer = "spacer"
    icon = "icon"
    link = "link"
    multiple_choice = "multiple-choice"
    single_choice = "single-choice"
    gradient_text = "gradient-text"
    stat_number = "stat-number"
    avatar_group = "avatar-group"
    ticker = "ticker"
    badge = "badge"
    icon_text = "icon-text"
    process_step = "process-step"
    countdown = "countdown"
    carousel = "carousel"
    logo_marquee = "logo-marquee"
    map_embed = "map-embed"
    html_embed = "html-embed"


# Intents written by older canvas producers.
LEGACY_STEP_INTENTS: dict[str, StepIntent] = {
    "qualify": StepIntent.capture,
    "convert": StepIntent.capture,
}


def _coerce_tag(value: Any, enum_cls: type[Enum], fallback: Enum) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            return fallback
    return fallback

def _as_text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _as_items(value: Any) -> list[Any]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, (Mapping, BaseModel))]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_timestamp_adapter = TypeAdapter(datetime)


class CanvasNodeModel(BaseModel):
    """Shared shape of every level below a step: an id plus free-form props.

    Producers (older editors, generated funnels) are allowed to leave ids out;
    the converter hands out fresh ones.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    props: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("props", mode="before")
    @classmethod
    def _normalize_props(cls, value: Any) -> Any:
        return dict(value) if isinstance(value, Mapping) else {}

    @classmethod
    def _text_field(cls, value: Any, info: ValidationInfo) -> str:
        return _as_text(value, cls.model_fields[info.field_name].default)


class Element(CanvasNodeModel):
    """Leaf content primitive. ``kind`` travels as ``type`` on the wire."""

    kind: ElementType = Field(default=ElementType.text, alias="type")
    content: str = ""

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        return _coerce_tag(value, ElementType, ElementType.text)

    @field_validator("content", mode="before")
    @classmethod
    def _normalize_content(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)


class Block(CanvasNodeModel):
    kind: BlockType = Field(default=BlockType.custom, alias="type")
    label: str = ""
    elements: list[Element] = Field(default_factory=list)

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        return _coerce_tag(value, BlockType, BlockType.custom)

    @field_validator("label", mode="before")
    @classmethod
    def _normalize_label(cls, value: Any, info: ValidationInfo) -> str:
        return cls._text_field(value, info)

    @field_validator("elements", mode="before")
    @classmethod
    def _normalize_elements(cls, value: Any) -> list[Any]:
        return _as_items(value)


class Stack(CanvasNodeModel):
    label: str = "Stack"
    direction: StackDirection = StackDirection.vertical
    blocks: list[Block] = Field(default_factory=list)

    @field_validator("label", mode="before")
    @classmethod
    def _normalize_label(cls, value: Any, info: ValidationInfo) -> str:
        return cls._text_field(value, info)

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        return _coerce_tag(value, StackDirection, StackDirection.vertical)

    @field_validator("blocks", mode="before")
    @classmethod
    def _normalize_blocks(cls, value: Any) -> list[Any]:
        return _as_items(value)


class Frame(CanvasNodeModel):
    label: str = "Section"
    layout: FrameLayout | None = None
    background: str | None = None
    styles: dict[str, Any] | None = None
    stacks: list[Stack] = Field(default_factory=list)

    @field_validator("label", mode="before")
    @classmethod
    def _normalize_label(cls, value: Any, info: ValidationInfo) -> str:
        return cls._text_field(value, info)

    @field_validator("layout", mode="before")
    @classmethod
    def _normalize_layout(cls, value: Any) -> Any:
        if value is None:
            return None
        return _coerce_tag(value, FrameLayout, FrameLayout.contained)

    @field_validator("background", mode="before")
    @classmethod
    def _normalize_background(cls, value: Any) -> str | None:
        return value if isinstance(value, str) else None

    @field_validator("styles", mode="before")
    @classmethod
    def _normalize_styles(cls, value: Any) -> dict[str, Any] | None:
        return dict(value) if isinstance(value, Mapping) else None

    @field_validator("stacks", mode="before")
    @classmethod
    def _normalize_stacks(cls, value: Any) -> list[Any]:
        return _as_items(value)


class PageBackground(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "solid"
    color: str | None = "#ffffff"
    gradient: dict[str, Any] | None = None
    image: str | None = None
    video: str | None = None
    overlay: str | None = None


class PageMeta(BaseModel):
    title: str | None = None
    description: str | None = None
    og_image: str | None = None


class PageSettings(BaseModel):
    """Document-wide settings. Tracking ids, webhooks and the like pass through as extras."""

    model_config = ConfigDict(extra="allow")

    theme: str = "light"
    font_family: str = "Inter"
    primary_color: str = "#8B5CF6"
    page_background: PageBackground = Field(default_factory=PageBackground)
    meta: PageMeta = Field(default_factory=PageMeta)

    @field_validator("theme", mode="before")
    @classmethod
    def _normalize_theme(cls, value: Any) -> str:
        return value if value in ("light", "dark") else "light"


class Step(BaseModel):
    id: str = ""
    name: str = ""
    step_type: StepType = StepType.form
    step_intent: StepIntent = StepIntent.capture
    submit_mode: SubmitMode = SubmitMode.next
    frames: list[Frame] = Field(default_factory=list)
    background: PageBackground | None = None
    settings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "name", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("step_type", mode="before")
    @classmethod
    def _normalize_step_type(cls, value: Any) -> Any:
        return _coerce_tag(value, StepType, StepType.form)

    @field_validator("step_intent", mode="before")
    @classmethod
    def _normalize_step_intent(cls, value: Any) -> Any:
        if isinstance(value, str) and value in LEGACY_STEP_INTENTS:
            return LEGACY_STEP_INTENTS[value]
        return _coerce_tag(value, StepIntent, StepIntent.capture)

    @field_validator("submit_mode", mode="before")
    @classmethod
    def _normalize_submit_mode(cls, value: Any) -> Any:
        return _coerce_tag(value, SubmitMode, SubmitMode.next)

    @field_validator("frames", mode="before")
    @classmethod
    def _normalize_frames(cls, value: Any) -> list[Any]:
        return _as_items(value)

    @field_validator("background", mode="before")
    @classmethod
    def _normalize_background(cls, value: Any) -> Any:
        if isinstance(value, PageBackground):
            return value
        if not isinstance(value, Mapping):
            return None
        try:
            return PageBackground.model_validate(value)
        except ValidationError:
            return None

    @field_validator("settings", mode="before")
    @classmethod
    def _normalize_settings(cls, value: Any) -> dict[str, Any]:
        return dict(value) if isinstance(value, Mapping) else {}


class Page(BaseModel):
    id: str = ""
    name: str = "Funnel"
    slug: str = "funnel"
    steps: list[Step] = Field(default_factory=list)
    settings: PageSettings = Field(default_factory=PageSettings)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("name", "slug", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any, info: ValidationInfo) -> str:
        return _as_text(value, cls.model_fields[info.field_name].default)

    @field_validator("steps", mode="before")
    @classmethod
    def _normalize_steps(cls, value: Any) -> list[Any]:
        return _as_items(value)

    @field_validator("settings", mode="before")
    @classmethod
    def _normalize_settings(cls, value: Any) -> Any:
        if isinstance(value, PageSettings):
            return value
        if not isinstance(value, Mapping):
            return PageSettings()
        try:
            return PageSettings.model_validate(value)
        except ValidationError:
            return PageSettings()

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> datetime:
        try:
            return _timestamp_adapter.validate_python(value)
        except ValidationError:
            return _utcnow()

    def iter_ids(self) -> Iterator[str]:
        """Yield every identifier in the document, outermost first."""
        yield self.id
        for step in self.steps:
            yield step.id
            for frame in step.frames:
                yield frame.id
                for stack in frame.stacks:
                    yield stack.id
                    for block in stack.blocks:
                        yield block.id
                        for element in block.elements:
                            yield element.id


__all__ = [
    "Block",
    "BlockType",
    "CanvasNodeModel",
    "Element",
    "ElementType",
    "Frame",
    "FrameLayout",
    "LEGACY_STEP_INTENTS",
    "Page",
    "PageBackground",
    "PageMeta",
    "PageSettings",
    "Stack",
    "StackDirection",
    "Step",
    "StepIntent",
    "StepType",
    "SubmitMode",
]
