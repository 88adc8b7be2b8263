from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from .models.canvas import BlockType, ElementType, StepIntent, StepType, SubmitMode
from .models.editor import EditorPageType


@dataclass(frozen=True)
class PlaceholderElement:
    kind: ElementType
    content: str
    props: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlaceholderBlock:
    kind: BlockType
    label: str
    elements: Sequence[PlaceholderElement]


FRAME_NODE_TAGS: frozenset[str] = frozenset({"frame", "section"})
STACK_NODE_TAGS: frozenset[str] = frozenset({"stack", "container"})

# Tags that are leaf content wherever they appear in the editor tree.
ELEMENT_NODE_TAGS: frozenset[str] = frozenset(
    {
        "heading",
        "text",
        "button",
        "input",
        "image",
        "video",
        "divider",
        "spacer",
        "icon",
        "checkbox",
        "select",
        "radio",
    }
)


PAGE_TYPE_TO_INTENT: Mapping[str, StepIntent] = MappingProxyType(
    {
        EditorPageType.landing.value: StepIntent.capture,
        EditorPageType.optin.value: StepIntent.capture,
        EditorPageType.appointment.value: StepIntent.schedule,
        EditorPageType.thank_you.value: StepIntent.complete,
    }
)

PAGE_TYPE_TO_STEP_TYPE: Mapping[str, StepType] = MappingProxyType(
    {
        EditorPageType.landing.value: StepType.form,
        EditorPageType.optin.value: StepType.form,
        EditorPageType.appointment.value: StepType.booking,
        EditorPageType.thank_you.value: StepType.thankyou,
    }
)

# Not injective: several intents collapse onto ``landing``.
STEP_INTENT_TO_PAGE_TYPE: Mapping[str, EditorPageType] = MappingProxyType(
    {
        StepIntent.capture.value: EditorPageType.landing,
        "qualify": EditorPageType.landing,
        StepIntent.collect.value: EditorPageType.landing,
        StepIntent.schedule.value: EditorPageType.appointment,
        "convert": EditorPageType.optin,
        StepIntent.complete.value: EditorPageType.thank_you,
    }
)

NODE_TYPE_TO_BLOCK_TYPE: Mapping[str, BlockType] = MappingProxyType(
    {
        **{kind.value: kind for kind in BlockType},
        "section": BlockType.text_block,
        "container": BlockType.custom,
        "form": BlockType.form_field,
    }
)

NODE_TYPE_TO_ELEMENT_TYPE: Mapping[str, ElementType] = MappingProxyType(
    {kind.value: kind for kind in ElementType}
)

FALLBACK_BLOCK_TYPE = BlockType.custom
FALLBACK_ELEMENT_TYPE = ElementType.text
FALLBACK_PAGE_TYPE = EditorPageType.landing

# Canvas step types seen through the step registry's vocabulary.
CANVAS_STEP_KINDS: Mapping[str, str] = MappingProxyType(
    {
        StepType.form.value: "opt_in",
        StepType.content.value: "welcome",
        StepType.quiz.value: "multi_choice",
        StepType.booking.value: "embed",
        StepType.checkout.value: "opt_in",
        StepType.thankyou.value: "thank_you",
    }
)


DEFAULT_PAGE_SETTINGS: Mapping[str, Any] = MappingProxyType(
    {
        "theme": "light",
        "font_family": "Inter",
        "primary_color": "#8B5CF6",
        "page_background": {"type": "solid", "color": "#ffffff"},
    }
)

DEFAULT_PLACEHOLDER_BLOCK = PlaceholderBlock(
    kind=BlockType.hero,
    label="Hero",
    elements=(
        PlaceholderElement(
            kind=ElementType.heading,
            content="Welcome to Your Funnel",
            props={"level": 1},
        ),
        PlaceholderElement(
            kind=ElementType.text,
            content="Start building your funnel by adding blocks",
        ),
    ),
)


@dataclass(frozen=True)
class ConversionTables:
    frame_tags: frozenset[str] = FRAME_NODE_TAGS
    stack_tags: frozenset[str] = STACK_NODE_TAGS
    element_tags: frozenset[str] = ELEMENT_NODE_TAGS
    page_type_to_intent: Mapping[str, StepIntent] = field(default_factory=lambda: PAGE_TYPE_TO_INTENT)
    page_type_to_step_type: Mapping[str, StepType] = field(
        default_factory=lambda: PAGE_TYPE_TO_STEP_TYPE
    )
    intent_to_page_type: Mapping[str, EditorPageType] = field(
        default_factory=lambda: STEP_INTENT_TO_PAGE_TYPE
    )
    node_to_block_type: Mapping[str, BlockType] = field(
        default_factory=lambda: NODE_TYPE_TO_BLOCK_TYPE
    )
    node_to_element_type: Mapping[str, ElementType] = field(
        default_factory=lambda: NODE_TYPE_TO_ELEMENT_TYPE
    )
    placeholder_block: PlaceholderBlock = field(default_factory=lambda: DEFAULT_PLACEHOLDER_BLOCK)
    page_settings: Mapping[str, Any] = field(default_factory=lambda: DEFAULT_PAGE_SETTINGS)

    def intent_for_page_type(self, page_type: str) -> StepIntent:
        return self.page_type_to_intent.get(page_type, StepIntent.capture)

    def step_type_for_page_type(self, page_type: str) -> StepType:
        return self.page_type_to_step_type.get(page_type, StepType.form)

    def page_type_for_intent(self, intent: str) -> EditorPageType:
        return self.intent_to_page_type.get(intent, FALLBACK_PAGE_TYPE)

    def block_type_for(self, tag: str) -> BlockType:
        return self.node_to_block_type.get(tag, FALLBACK_BLOCK_TYPE)

    def element_type_for(self, tag: str) -> ElementType:
        return self.node_to_element_type.get(tag, FALLBACK_ELEMENT_TYPE)

    def submit_mode_for(self, intent: StepIntent) -> SubmitMode:
        return SubmitMode.redirect if intent == StepIntent.complete else SubmitMode.next


def default_conversion_tables() -> ConversionTables:
    return ConversionTables()


__all__ = [
    "CANVAS_STEP_KINDS",
    "ConversionTables",
    "DEFAULT_PAGE_SETTINGS",
    "DEFAULT_PLACEHOLDER_BLOCK",
    "ELEMENT_NODE_TAGS",
    "FALLBACK_BLOCK_TYPE",
    "FALLBACK_ELEMENT_TYPE",
    "FALLBACK_PAGE_TYPE",
    "FRAME_NODE_TAGS",
    "NODE_TYPE_TO_BLOCK_TYPE",
    "NODE_TYPE_TO_ELEMENT_TYPE",
    "PAGE_TYPE_TO_INTENT",
    "PAGE_TYPE_TO_STEP_TYPE",
    "PlaceholderBlock",
    "PlaceholderElement",
    "STACK_NODE_TAGS",
    "STEP_INTENT_TO_PAGE_TYPE",
    "default_conversion_tables",
]
