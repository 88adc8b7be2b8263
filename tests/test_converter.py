import json
from pathlib import Path

from funnel_flow.converter import (
    DocumentConverter,
    editor_document_to_flow_canvas,
    flow_canvas_to_editor_document,
)
from funnel_flow.models.canvas import (
    Block,
    BlockType,
    Element,
    ElementType,
    Frame,
    Page,
    Stack,
    Step,
    StepIntent,
    StepType,
    SubmitMode,
)
from funnel_flow.models.editor import EditorDocument, EditorPageType

FIXTURES = Path(__file__).resolve().parents[1] / "data" / "documents"


def load_fixture(name: str) -> EditorDocument:
    fixture_path = FIXTURES / f"{name}.json"
    return EditorDocument.model_validate_json(fixture_path.read_text(encoding="utf-8"))


def build_page() -> Page:
    def step(step_id, name, step_type, intent, blocks):
        return Step(
            id=step_id,
            name=name,
            step_type=step_type,
            step_intent=intent,
            frames=[
                Frame(
                    id=f"{step_id}-frame",
                    label="Main",
                    stacks=[Stack(id=f"{step_id}-stack", label="Content", blocks=blocks)],
                )
            ],
        )

    return Page(
        id="page-1",
        name="Coaching funnel",
        slug="coaching",
        steps=[
            step(
                "s1",
                "Landing",
                StepType.form,
                StepIntent.capture,
                [
                    Block(
                        id="b1",
                        kind=BlockType.hero,
                        label="Hero",
                        elements=[
                            Element(id="e1", kind=ElementType.heading, content="Grow faster"),
                            Element(id="e2", kind=ElementType.button, content="Start"),
                        ],
                    ),
                    Block(
                        id="b2",
                        kind=BlockType.testimonial,
                        label="Proof",
                        elements=[Element(id="e3", kind=ElementType.badge, content="5 stars")],
                    ),
                ],
            ),
            step(
                "s2",
                "Survey",
                StepType.quiz,
                StepIntent.collect,
                [
                    Block(
                        id="b3",
                        kind=BlockType.form_field,
                        label="Question",
                        elements=[
                            Element(id="e4", kind=ElementType.multiple_choice, content="Budget?"),
                            Element(id="e5", kind=ElementType.input, content=""),
                        ],
                    )
                ],
            ),
            step(
                "s3",
                "Done",
                StepType.thankyou,
                StepIntent.complete,
                [
                    Block(
                        id="b4",
                        kind=BlockType.text_block,
                        label="Thanks",
                        elements=[Element(id="e6", kind=ElementType.text, content="See you soon")],
                    )
                ],
            ),
        ],
    )


def block_signature(page: Page):
    return [
        [
            (block.kind, [(element.kind, element.content) for element in block.elements])
            for frame in step.frames
            for stack in frame.stacks
            for block in stack.blocks
        ]
        for step in page.steps
    ]


def all_elements(page: Page):
    return [
        element
        for step in page.steps
        for frame in step.frames
        for stack in frame.stacks
        for block in stack.blocks
        for element in block.elements
    ]


def assert_structurally_valid(page: Page):
    assert page.steps, "page must have at least one step"
    for step in page.steps:
        assert step.frames, f"step {step.id} has no frames"
        for frame in step.frames:
            assert frame.stacks, f"frame {frame.id} has no stacks"
    ids = list(page.iter_ids())
    assert len(ids) == len(set(ids)), "identifiers must be unique"


def test_appointment_page_converts_to_schedule_step():
    document = {
        "version": 1,
        "pages": [
            {
                "id": "p1",
                "name": "Book",
                "type": "appointment",
                "canvasRoot": {
                    "id": "r",
                    "type": "section",
                    "props": {},
                    "children": [
                        {"id": "b1", "type": "heading", "props": {"content": "Book now"}, "children": []}
                    ],
                },
            }
        ],
        "activePageId": "p1",
    }

    page = editor_document_to_flow_canvas(document)

    assert len(page.steps) == 1
    step = page.steps[0]
    assert step.step_intent == StepIntent.schedule
    assert step.step_type == StepType.booking
    assert len(step.frames) == 1
    assert len(step.frames[0].stacks) == 1
    blocks = step.frames[0].stacks[0].blocks
    assert len(blocks) == 1
    assert blocks[0].kind == BlockType.custom
    assert len(blocks[0].elements) == 1
    element = blocks[0].elements[0]
    assert element.kind == ElementType.heading
    assert element.content == "Book now"
    assert element.id == "b1"


def test_page_types_map_to_intents_and_step_types():
    expected = {
        "landing": (StepIntent.capture, StepType.form),
        "optin": (StepIntent.capture, StepType.form),
        "appointment": (StepIntent.schedule, StepType.booking),
        "thank_you": (StepIntent.complete, StepType.thankyou),
        "mystery": (StepIntent.capture, StepType.form),
    }
    document = {
        "pages": [
            {"id": page_type, "name": page_type, "type": page_type, "canvasRoot": None}
            for page_type in expected
        ]
    }

    page = editor_document_to_flow_canvas(document)

    assert [(step.step_intent, step.step_type) for step in page.steps] == list(expected.values())
    assert page.steps[3].submit_mode == SubmitMode.redirect
    assert page.steps[0].submit_mode == SubmitMode.next


def test_fixture_document_keeps_layout_and_content():
    page = editor_document_to_flow_canvas(load_fixture("booking-funnel"), "agency")

    assert page.slug == "agency"
    assert [step.id for step in page.steps] == ["page-optin", "page-book", "page-thanks"]
    assert_structurally_valid(page)

    optin = page.steps[0]
    frame = optin.frames[0]
    assert frame.id == "hero-section"
    assert frame.label == "Hero"
    assert frame.layout is not None and frame.layout.value == "full-width"
    stack = frame.stacks[0]
    assert stack.label == "Hero copy"
    assert [block.kind for block in stack.blocks] == [BlockType.hero, BlockType.form_field]
    hero = stack.blocks[0]
    assert [element.content for element in hero.elements] == ["Scale your agency", "Free 12-page playbook"]
    assert hero.elements[0].props == {"level": 1}

    thanks = page.steps[2]
    assert len(thanks.frames) == 1
    blocks = thanks.frames[0].stacks[0].blocks
    assert [block.kind for block in blocks] == [BlockType.custom, BlockType.custom]
    assert blocks[1].props["node_type"] == "confetti"


def test_blocks_directly_under_root_are_backfilled():
    document = {
        "pages": [
            {
                "id": "p1",
                "type": "landing",
                "canvasRoot": {
                    "id": "root",
                    "type": "page",
                    "children": [
                        {"id": "h", "type": "hero", "props": {}, "children": []},
                        {"id": "c", "type": "cta", "props": {}, "children": []},
                        {"id": "s", "type": "section", "props": {}, "children": []},
                        {"id": "f", "type": "faq", "props": {}, "children": []},
                    ],
                },
            }
        ]
    }

    step = editor_document_to_flow_canvas(document).steps[0]

    assert len(step.frames) == 3
    first, explicit, last = step.frames
    assert [block.id for block in first.stacks[0].blocks] == ["h", "c"]
    assert explicit.id == "s"
    assert len(explicit.stacks) == 1
    assert explicit.stacks[0].blocks == []
    assert [block.kind for block in last.stacks[0].blocks] == [BlockType.faq]


def test_nested_block_children_become_wrapper_elements():
    document = {
        "pages": [
            {
                "id": "p1",
                "type": "landing",
                "canvasRoot": {
                    "id": "root",
                    "type": "section",
                    "children": [
                        {
                            "id": "outer",
                            "type": "feature",
                            "props": {"label": "Features"},
                            "children": [
                                {
                                    "id": "inner",
                                    "type": "testimonial",
                                    "props": {"content": "Loved it"},
                                    "children": [
                                        {"id": "deep", "type": "text", "props": {"content": "- Sam"}}
                                    ],
                                }
                            ],
                        }
                    ],
                },
            }
        ]
    }

    page = editor_document_to_flow_canvas(document)
    block = page.steps[0].frames[0].stacks[0].blocks[0]

    assert block.kind == BlockType.feature
    assert block.label == "Features"
    wrapper = block.elements[0]
    assert wrapper.kind == ElementType.text
    assert wrapper.content == "Loved it"
    assert wrapper.props["node_type"] == "testimonial"
    assert wrapper.props["children"][0]["id"] == "deep"

    restored = flow_canvas_to_editor_document(page)
    section = restored.pages[0].canvas_root.children[0]
    outer = section.children[0].children[0]
    inner = outer.children[0]
    assert inner.type == "testimonial"
    assert inner.children[0].id == "deep"


def test_unknown_tags_fall_back_to_safe_kinds():
    document = {
        "pages": [
            {
                "id": "p1",
                "type": "landing",
                "canvasRoot": {
                    "id": "root",
                    "type": "frame",
                    "children": [
                        {
                            "id": "w",
                            "type": "widget-9000",
                            "props": {"label": "Widget"},
                            "children": [{"id": "x", "type": "sparkle", "props": {"text": "hi"}}],
                        }
                    ],
                },
            }
        ]
    }

    block = editor_document_to_flow_canvas(document).steps[0].frames[0].stacks[0].blocks[0]

    assert block.kind == BlockType.custom
    assert block.elements[0].kind == ElementType.text
    assert block.elements[0].content == "hi"


def test_duplicate_and_missing_ids_are_replaced():
    document = {
        "pages": [
            {
                "id": "dup",
                "type": "landing",
                "canvasRoot": {
                    "id": "root",
                    "type": "section",
                    "children": [
                        {"id": "dup", "type": "hero", "children": [{"id": "", "type": "text"}]},
                        {"id": "dup", "type": "cta"},
                    ],
                },
            }
        ]
    }

    page = editor_document_to_flow_canvas(document)

    assert page.steps[0].id == "dup"
    assert_structurally_valid(page)


def test_absent_or_empty_documents_produce_default_page():
    for document in (None, {}, {"pages": []}, {"pages": "nope"}, {"version": "x"}, "garbage"):
        page = editor_document_to_flow_canvas(document, "fallback")

        assert page.slug == "fallback"
        assert len(page.steps) == 1
        assert_structurally_valid(page)
        hero = page.steps[0].frames[0].stacks[0].blocks[0]
        assert hero.kind == BlockType.hero
        assert hero.elements[0].content == "Welcome to Your Funnel"


def test_page_without_canvas_root_gets_placeholder_frame():
    page = editor_document_to_flow_canvas({"pages": [{"name": "Empty"}]})

    assert page.steps[0].name == "Empty"
    assert_structurally_valid(page)


def test_flow_canvas_to_editor_document_shape():
    document = flow_canvas_to_editor_document(build_page())

    assert document.version == 1
    assert [page.id for page in document.pages] == ["s1", "s2", "s3"]
    assert document.active_page_id == "s1"
    assert [page.type for page in document.pages] == [
        EditorPageType.landing,
        EditorPageType.landing,
        EditorPageType.thank_you,
    ]
    root = document.pages[0].canvas_root
    assert root.type == "frame"
    assert root.props["step_intent"] == "capture"
    section = root.children[0]
    assert section.type == "section"
    container = section.children[0]
    assert container.type == "container"
    assert container.props["direction"] == "vertical"
    hero = container.children[0]
    assert hero.type == "hero"
    assert [child.props["content"] for child in hero.children] == ["Grow faster", "Start"]

    dumped = document.model_dump(by_alias=True)
    assert "canvasRoot" in dumped["pages"][0]
    assert dumped["activePageId"] == "s1"


def test_round_trip_preserves_steps_kinds_and_content():
    original = build_page()

    restored = editor_document_to_flow_canvas(flow_canvas_to_editor_document(original))

    assert [step.id for step in restored.steps] == [step.id for step in original.steps]
    assert [step.step_intent for step in restored.steps] == [
        StepIntent.capture,
        StepIntent.collect,
        StepIntent.complete,
    ]
    assert [step.step_type for step in restored.steps] == [
        StepType.form,
        StepType.quiz,
        StepType.thankyou,
    ]
    assert block_signature(restored) == block_signature(original)
    assert_structurally_valid(restored)


def test_round_trip_through_json_storage():
    original = build_page()
    stored = json.dumps(flow_canvas_to_editor_document(original).model_dump(mode="json", by_alias=True))

    restored = editor_document_to_flow_canvas(json.loads(stored))

    assert block_signature(restored) == block_signature(original)


def test_canvas_to_editor_is_total():
    for page in (None, {}, {"id": "p", "steps": []}, 42):
        document = flow_canvas_to_editor_document(page)

        assert len(document.pages) == 1
        assert document.active_page_id == document.pages[0].id
        assert_structurally_valid(editor_document_to_flow_canvas(document))


def test_legacy_intents_are_normalized():
    page = Page.model_validate(
        {
            "id": "p",
            "steps": [
                {"id": "a", "step_intent": "qualify", "step_type": "quiz"},
                {"id": "b", "step_intent": "convert", "step_type": "checkout"},
            ],
        }
    )

    assert [step.step_intent for step in page.steps] == [StepIntent.capture, StepIntent.capture]
    document = flow_canvas_to_editor_document(page)
    assert [p.type for p in document.pages] == [EditorPageType.landing, EditorPageType.landing]


def test_converter_accepts_custom_id_factory():
    class CountingIds:
        def __init__(self):
            self._count = 0
            self._seen = set()

        def new(self):
            self._count += 1
            value = f"gen-{self._count}"
            self._seen.add(value)
            return value

        def claim(self, candidate):
            if candidate and candidate not in self._seen:
                self._seen.add(candidate)
                return candidate
            return self.new()

    converter = DocumentConverter(id_factory=CountingIds)

    page = converter.to_flow_canvas(None)

    assert page.id == "gen-1"
    assert all(identifier.startswith("gen-") for identifier in page.iter_ids())


def test_canonical_page_without_ids_keeps_content():
    page = build_page().model_dump(by_alias=True)
    del page["id"]
    del page["steps"][0]["id"]
    del page["steps"][0]["frames"][0]["stacks"][0]["blocks"][0]["elements"][0]["id"]
    page["steps"][1]["frames"][0]["id"] = None

    document = flow_canvas_to_editor_document(page)

    assert [p.name for p in document.pages] == ["Landing", "Survey", "Done"]
    assert document.pages[0].id
    assert document.active_page_id == document.pages[0].id
    restored = editor_document_to_flow_canvas(document)
    assert block_signature(restored) == block_signature(build_page())
    assert_structurally_valid(restored)


def test_malformed_canonical_levels_are_skipped_not_fatal():
    page = {
        "id": "p",
        "steps": [
            {"id": "a", "name": "Kept", "frames": "not-a-list"},
            "garbage",
            {
                "id": "b",
                "name": 7,
                "background": {"type": "solid", "color": 3},
                "frames": [
                    {
                        "id": "f",
                        "label": None,
                        "stacks": [{"id": "s", "blocks": [42, {"id": "x", "elements": None}]}],
                    }
                ],
            },
        ],
        "settings": "dark",
        "created_at": "yesterday",
    }

    document = flow_canvas_to_editor_document(page)

    assert [p.id for p in document.pages] == ["a", "b"]
    assert document.pages[1].name == "7"
    restored = editor_document_to_flow_canvas(document)
    assert_structurally_valid(restored)
    assert [block.id for block in restored.steps[1].frames[0].stacks[0].blocks] == ["x"]


def test_duplicate_canonical_ids_are_reissued_for_storage():
    page = build_page()
    page.steps[1].id = page.steps[0].id
    page.steps[2].frames[0].stacks[0].blocks[0].id = "b1"

    document = flow_canvas_to_editor_document(page)

    page_ids = [p.id for p in document.pages]
    assert len(set(page_ids)) == 3
    assert_structurally_valid(editor_document_to_flow_canvas(document))


def test_bad_version_keeps_pages():
    for version in (None, "v2", [], True):
        document = {
            "version": version,
            "pages": [
                {
                    "id": "p1",
                    "type": "landing",
                    "canvasRoot": {
                        "id": "r",
                        "type": "section",
                        "children": [{"id": "h", "type": "heading", "props": {"content": "Real content"}}],
                    },
                }
            ],
        }

        page = editor_document_to_flow_canvas(document)

        assert [element.content for element in all_elements(page)] == ["Real content"]


def test_non_string_element_content_is_kept():
    document = {
        "pages": [
            {
                "id": "p1",
                "canvasRoot": {
                    "id": "r",
                    "type": "section",
                    "children": [
                        {
                            "id": "stats",
                            "type": "stats-row",
                            "children": [
                                {"id": "n", "type": "stat-number", "props": {"content": 500, "suffix": "+"}},
                                {"id": "t", "type": "text", "props": {"content": "", "text": "ignored"}},
                                {"id": "u", "type": "text", "props": {"text": "fallback"}},
                            ],
                        }
                    ],
                },
            }
        ]
    }

    page = editor_document_to_flow_canvas(document)
    number, empty, fallback = page.steps[0].frames[0].stacks[0].blocks[0].elements

    assert number.kind == ElementType.stat_number
    assert number.content == "500"
    assert number.props == {"suffix": "+"}
    assert empty.content == ""
    assert fallback.content == "fallback"


def test_unusable_frame_props_are_kept_raw():
    document = {
        "pages": [
            {
                "id": "p1",
                "canvasRoot": {
                    "id": "root",
                    "type": "page",
                    "children": [
                        {
                            "id": "odd",
                            "type": "section",
                            "props": {
                                "label": 12,
                                "layout": "wide",
                                "background": {"color": "#000"},
                                "styles": "padding: 4px",
                            },
                        },
                        {
                            "id": "good",
                            "type": "section",
                            "props": {"label": "Good", "background": "#fff", "styles": {"gap": 4}},
                        },
                    ],
                },
            }
        ]
    }

    odd, good = editor_document_to_flow_canvas(document).steps[0].frames

    assert odd.label == "Section"
    assert odd.layout is None
    assert odd.background is None
    assert odd.styles is None
    assert odd.props == {
        "label": 12,
        "layout": "wide",
        "background": {"color": "#000"},
        "styles": "padding: 4px",
    }
    assert good.label == "Good"
    assert good.background == "#fff"
    assert good.styles == {"gap": 4}
    assert good.props == {}

    restored = flow_canvas_to_editor_document(editor_document_to_flow_canvas(document))
    odd_node = restored.pages[0].canvas_root.children[0]
    assert odd_node.props["label"] == 12
    assert odd_node.props["layout"] == "wide"
    assert odd_node.props["styles"] == "padding: 4px"
