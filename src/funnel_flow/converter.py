"""Conversion between the stored editor tree and the canonical funnel document.

The editor tree is one untyped recursive ``CanvasNode`` per page; the canonical
document has five typed levels below ``Page``. Both directions are total: any
input, however partial, yields a non-empty document with at least one step,
frame and stack. Levels the source tree skips are backfilled with synthesized
frames and stacks so content is never dropped.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, TypeVar

from pydantic import ValidationError

from .dictionaries import ConversionTables, default_conversion_tables
from .identifiers import IdFactory
from .models.canvas import (
    Block,
    BlockType,
    Element,
    ElementType,
    Frame,
    FrameLayout,
    Page,
    PageBackground,
    PageSettings,
    Stack,
    StackDirection,
    Step,
    StepIntent,
    StepType,
    SubmitMode,
)
from .models.editor import CanvasNode, EditorDocument, EditorPage

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# Props the converter lifts into typed fields and writes back on the way out.
ROOT_STEP_KEYS = ("step_type", "step_intent", "submit_mode", "settings", "background")
FRAME_FIELD_KEYS = ("label", "layout", "background", "styles")
STACK_FIELD_KEYS = ("label", "direction")
BLOCK_FIELD_KEYS = ("label",)
ELEMENT_FIELD_KEYS = ("content",)

NODE_TYPE_PROP = "node_type"
NESTED_CHILDREN_PROP = "children"

ROOT_NODE_TYPE = "frame"
FRAME_NODE_TYPE = "section"
STACK_NODE_TYPE = "container"

DEFAULT_FRAME_LABEL = "Main Section"
FRAME_FALLBACK_LABEL = "Section"
DEFAULT_STACK_LABEL = "Content"


def _without(props: Mapping[str, Any], keys: tuple[str, ...]) -> dict[str, Any]:
    return {key: value for key, value in props.items() if key not in keys}


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _member(enum_cls: type[E], value: Any) -> E | None:
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _background(value: Any) -> PageBackground | None:
    if not isinstance(value, Mapping):
        return None
    try:
        return PageBackground.model_validate(value)
    except ValidationError:
        logger.warning("Dropping malformed step background", exc_info=True)
        return None


class DocumentConverter:
    def __init__(
        self,
        *,
        tables: ConversionTables | None = None,
        id_factory=IdFactory,
    ) -> None:
        self._tables = tables or default_conversion_tables()
        self._id_factory = id_factory

    # -- editor tree -> canonical document -------------------------------------------------

    def to_flow_canvas(
        self,
        document: EditorDocument | Mapping[str, Any] | None,
        funnel_slug: str = "funnel",
    ) -> Page:
        ids = self._id_factory()
        document = self._coerce_editor_document(document)
        if document is None or not document.pages:
            return self._default_page(ids, funnel_slug, name="New Funnel")

        page_id = ids.new()
        steps = [self._page_to_step(page, index, ids) for index, page in enumerate(document.pages)]
        page = Page(
            id=page_id,
            name="Funnel",
            slug=funnel_slug,
            steps=steps,
            settings=self._default_settings(title="Funnel"),
        )
        logger.debug(
            "Converted editor document",
            extra={"extra": {"steps": len(steps), "slug": funnel_slug}},
        )
        return page

    def _coerce_editor_document(
        self, document: EditorDocument | Mapping[str, Any] | None
    ) -> EditorDocument | None:
        if document is None or isinstance(document, EditorDocument):
            return document
        if not isinstance(document, Mapping):
            logger.warning(f"Ignoring editor document of type {type(document).__name__}")
            return None
        try:
            return EditorDocument.model_validate(document)
        except ValidationError:
            logger.warning("Editor document failed validation; using default page", exc_info=True)
            return None

    def _page_to_step(self, page: EditorPage, index: int, ids: IdFactory) -> Step:
        root = page.canvas_root
        root_props = root.props if root is not None else {}
        step_id = ids.claim(page.id)

        # Values preserved on the root win over the lossy page-type tables.
        intent = _member(StepIntent, root_props.get("step_intent")) or (
            self._tables.intent_for_page_type(page.type.value)
        )
        step_type = _member(StepType, root_props.get("step_type")) or (
            self._tables.step_type_for_page_type(page.type.value)
        )
        submit_mode = _member(SubmitMode, root_props.get("submit_mode")) or (
            self._tables.submit_mode_for(intent)
        )

        frames = self._root_to_frames(root, ids) if root is not None else []
        if not frames:
            frames = [self._placeholder_frame(ids)]

        settings = root_props.get("settings")
        return Step(
            id=step_id,
            name=page.name or f"Page {index + 1}",
            step_type=step_type,
            step_intent=intent,
            submit_mode=submit_mode,
            frames=frames,
            background=_background(root_props.get("background")),
            settings=dict(settings) if isinstance(settings, Mapping) else {},
        )

    def _root_to_frames(self, root: CanvasNode, ids: IdFactory) -> list[Frame]:
        frame_tags = self._tables.frame_tags
        if not any(child.type in frame_tags for child in root.children):
            if root.type in frame_tags:
                return [self._node_to_frame(root, ids, is_root=True)]
            if root.type in self._tables.stack_tags:
                return [self._wrap_stack(self._node_to_stack(root, ids), ids)]
            if not root.children and self._is_content_tag(root.type):
                stack = self._empty_stack(ids)
                stack.blocks.append(self._node_to_block(root, ids))
                return [self._wrap_stack(stack, ids)]

        frames: list[Frame] = []
        backfill_frame: Frame | None = None
        backfill_stack: Stack | None = None
        for child in root.children:
            if child.type in frame_tags:
                frames.append(self._node_to_frame(child, ids))
                backfill_frame = backfill_stack = None
                continue
            if backfill_frame is None:
                backfill_frame = self._empty_frame(ids)
                frames.append(backfill_frame)
            if child.type in self._tables.stack_tags:
                backfill_frame.stacks.append(self._node_to_stack(child, ids))
                backfill_stack = None
                continue
            if backfill_stack is None:
                backfill_stack = self._empty_stack(ids)
                backfill_frame.stacks.append(backfill_stack)
            backfill_stack.blocks.append(self._node_to_block(child, ids))
        return frames

    def _node_to_frame(self, node: CanvasNode, ids: IdFactory, *, is_root: bool = False) -> Frame:
        frame_id = ids.claim(node.id)
        stacks: list[Stack] = []
        backfill: Stack | None = None
        for child in node.children:
            # Frames cannot nest, so a nested frame is read as a stack.
            if child.type in self._tables.stack_tags or child.type in self._tables.frame_tags:
                stacks.append(self._node_to_stack(child, ids))
                backfill = None
                continue
            if backfill is None:
                backfill = self._empty_stack(ids)
                stacks.append(backfill)
            backfill.blocks.append(self._node_to_block(child, ids))
        if not stacks:
            stacks.append(self._empty_stack(ids))

        styles = node.props.get("styles")
        lifted = {
            "label": _text(node.props.get("label")),
            "layout": _member(FrameLayout, node.props.get("layout")),
            "background": _text(node.props.get("background")),
            "styles": dict(styles) if isinstance(styles, Mapping) else None,
        }
        props = _without(node.props, FRAME_FIELD_KEYS + ROOT_STEP_KEYS)
        # Values the typed fields cannot hold stay in props as they came;
        # a root frame's step background belongs to the step.
        for key, value in lifted.items():
            raw = node.props.get(key)
            if value is None and raw is not None and not (is_root and key in ROOT_STEP_KEYS):
                props[key] = raw
        return Frame(
            id=frame_id,
            label=lifted["label"] or FRAME_FALLBACK_LABEL,
            layout=lifted["layout"],
            background=lifted["background"],
            styles=lifted["styles"],
            stacks=stacks,
            props=props,
        )

    def _node_to_stack(self, node: CanvasNode, ids: IdFactory) -> Stack:
        stack_id = ids.claim(node.id)
        return Stack(
            id=stack_id,
            label=_text(node.props.get("label")) or "Stack",
            direction=node.props.get("direction", StackDirection.vertical),
            blocks=[self._node_to_block(child, ids) for child in node.children],
            props=_without(node.props, STACK_FIELD_KEYS),
        )

    def _node_to_block(self, node: CanvasNode, ids: IdFactory) -> Block:
        if node.type in self._tables.element_tags:
            # Content met where a block belongs gets an implicit wrapper block.
            element = self._node_to_element(node, ids)
            return Block(
                id=ids.new(),
                kind=BlockType.custom,
                label=BlockType.custom.value,
                elements=[element],
            )

        block_id = ids.claim(node.id)
        kind = self._tables.block_type_for(node.type)
        props = _without(node.props, BLOCK_FIELD_KEYS)
        if node.type not in self._tables.node_to_block_type:
            props[NODE_TYPE_PROP] = node.type
        return Block(
            id=block_id,
            kind=kind,
            label=_text(node.props.get("label")) or kind.value,
            elements=[self._node_to_element(child, ids) for child in node.children],
            props=props,
        )

    def _node_to_element(self, node: CanvasNode, ids: IdFactory) -> Element:
        element_id = ids.claim(node.id)
        kind = self._tables.element_type_for(node.type)
        props = _without(node.props, ELEMENT_FIELD_KEYS)
        if node.type not in self._tables.node_to_element_type:
            props[NODE_TYPE_PROP] = node.type
        if node.children:
            # Blocks never nest; deeper structure rides along for the way back.
            props[NESTED_CHILDREN_PROP] = [child.model_dump() for child in node.children]
        content = node.props.get("content")
        if content is None:
            content = _text(node.props.get("text")) or ""
        return Element(id=element_id, kind=kind, content=content, props=props)

    def _is_content_tag(self, tag: str) -> bool:
        return tag in self._tables.element_tags or tag in self._tables.node_to_block_type

    def _wrap_stack(self, stack: Stack, ids: IdFactory) -> Frame:
        frame = self._empty_frame(ids)
        frame.stacks.append(stack)
        return frame

    # -- canonical document -> editor tree -------------------------------------------------

    def to_editor_document(self, page: Page | Mapping[str, Any] | None) -> EditorDocument:
        ids = self._id_factory()
        page = self.coerce_page(page)
        if page is None:
            page = self._default_page(self._id_factory(), "funnel", name="New Funnel")

        steps = list(page.steps)
        if not steps:
            steps = [self._default_step(self._id_factory())]

        pages = [self._step_to_page(step, index, ids) for index, step in enumerate(steps)]
        logger.debug("Serialized funnel document", extra={"extra": {"pages": len(pages)}})
        return EditorDocument(version=1, pages=pages, active_page_id=pages[0].id)

    def coerce_page(self, page: Page | Mapping[str, Any] | None) -> Page | None:
        """Canonical page from a model or mapping; ``None`` when it cannot be read."""
        if page is None or isinstance(page, Page):
            return page
        if not isinstance(page, Mapping):
            logger.warning(f"Ignoring funnel page of type {type(page).__name__}")
            return None
        try:
            return Page.model_validate(page)
        except ValidationError:
            logger.warning("Funnel page failed validation; using default page", exc_info=True)
            return None

    def _step_to_page(self, step: Step, index: int, ids: IdFactory) -> EditorPage:
        page_id = ids.claim(step.id)
        root_props: dict[str, Any] = {
            "step_type": step.step_type.value,
            "step_intent": step.step_intent.value,
            "submit_mode": step.submit_mode.value,
        }
        if step.settings:
            root_props["settings"] = dict(step.settings)
        if step.background is not None:
            root_props["background"] = step.background.model_dump(exclude_none=True)

        frames = step.frames or [self._placeholder_frame(ids)]
        root = CanvasNode(
            id=ids.claim(f"root-{page_id}"),
            type=ROOT_NODE_TYPE,
            props=root_props,
            children=[self._frame_to_node(frame, ids) for frame in frames],
        )
        return EditorPage(
            id=page_id,
            name=step.name or f"Page {index + 1}",
            type=self._tables.page_type_for_intent(step.step_intent.value),
            canvas_root=root,
        )

    def _frame_to_node(self, frame: Frame, ids: IdFactory) -> CanvasNode:
        props: dict[str, Any] = dict(frame.props)
        # An unusable label kept in props wins over the fallback it was replaced by.
        if frame.label != FRAME_FALLBACK_LABEL or "label" not in props:
            props["label"] = frame.label
        if frame.layout is not None:
            props["layout"] = frame.layout.value
        if frame.background is not None:
            props["background"] = frame.background
        if frame.styles is not None:
            props["styles"] = dict(frame.styles)
        return CanvasNode(
            id=ids.claim(frame.id),
            type=FRAME_NODE_TYPE,
            props=props,
            children=[self._stack_to_node(stack, ids) for stack in frame.stacks],
        )

    def _stack_to_node(self, stack: Stack, ids: IdFactory) -> CanvasNode:
        return CanvasNode(
            id=ids.claim(stack.id),
            type=STACK_NODE_TYPE,
            props={
                **_without(stack.props, STACK_FIELD_KEYS),
                "label": stack.label,
                "direction": stack.direction.value,
            },
            children=[self._block_to_node(block, ids) for block in stack.blocks],
        )

    def _block_to_node(self, block: Block, ids: IdFactory) -> CanvasNode:
        props = _without(block.props, BLOCK_FIELD_KEYS + (NODE_TYPE_PROP,))
        props["label"] = block.label
        return CanvasNode(
            id=ids.claim(block.id),
            type=self._restore_tag(block.kind, block.props, BlockType.custom),
            props=props,
            children=[self._element_to_node(element, ids) for element in block.elements],
        )

    def _element_to_node(self, element: Element, ids: IdFactory) -> CanvasNode:
        props = _without(element.props, ELEMENT_FIELD_KEYS + (NODE_TYPE_PROP, NESTED_CHILDREN_PROP))
        props["content"] = element.content
        nested = element.props.get(NESTED_CHILDREN_PROP)
        children = [
            CanvasNode.model_validate(child)
            for child in (nested if isinstance(nested, list) else ())
            if isinstance(child, (Mapping, CanvasNode))
        ]
        return CanvasNode(
            id=ids.claim(element.id),
            type=self._restore_tag(element.kind, element.props, ElementType.text),
            props=props,
            children=children,
        )

    @staticmethod
    def _restore_tag(kind: Any, props: Mapping[str, Any], fallback: Any) -> str:
        original = props.get(NODE_TYPE_PROP)
        if kind == fallback and isinstance(original, str) and original:
            return original
        return kind.value

    # -- defaults ---------------------------------------------------------------------------

    def _default_settings(self, *, title: str) -> PageSettings:
        return PageSettings.model_validate(
            {**self._tables.page_settings, "meta": {"title": title, "description": ""}}
        )

    def _default_page(self, ids: IdFactory, funnel_slug: str, *, name: str) -> Page:
        return Page(
            id=ids.new(),
            name=name,
            slug=funnel_slug,
            steps=[self._default_step(ids)],
            settings=self._default_settings(title=name),
        )

    def _default_step(self, ids: IdFactory) -> Step:
        return Step(
            id=ids.new(),
            name="Welcome",
            step_type=StepType.form,
            step_intent=StepIntent.capture,
            submit_mode=SubmitMode.next,
            frames=[self._placeholder_frame(ids)],
        )

    def _placeholder_frame(self, ids: IdFactory) -> Frame:
        placeholder = self._tables.placeholder_block
        block = Block(
            id=ids.new(),
            kind=placeholder.kind,
            label=placeholder.label,
            elements=[
                Element(id=ids.new(), kind=item.kind, content=item.content, props=dict(item.props))
                for item in placeholder.elements
            ],
        )
        stack = self._empty_stack(ids)
        stack.blocks.append(block)
        frame = self._empty_frame(ids)
        frame.stacks.append(stack)
        return frame

    def _empty_frame(self, ids: IdFactory) -> Frame:
        return Frame(id=ids.new(), label=DEFAULT_FRAME_LABEL)

    def _empty_stack(self, ids: IdFactory) -> Stack:
        return Stack(id=ids.new(), label=DEFAULT_STACK_LABEL, direction=StackDirection.vertical)


_default_converter = DocumentConverter()


def editor_document_to_flow_canvas(
    document: EditorDocument | Mapping[str, Any] | None,
    funnel_slug: str = "funnel",
) -> Page:
    """Load a stored editor document as a canonical funnel page."""
    return _default_converter.to_flow_canvas(document, funnel_slug)


def flow_canvas_to_editor_document(page: Page | Mapping[str, Any] | None) -> EditorDocument:
    """Serialize a canonical funnel page back to the storage format."""
    return _default_converter.to_editor_document(page)


__all__ = [
    "DocumentConverter",
    "editor_document_to_flow_canvas",
    "flow_canvas_to_editor_document",
]
