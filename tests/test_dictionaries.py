from funnel_flow.dictionaries import (
    DEFAULT_PLACEHOLDER_BLOCK,
    NODE_TYPE_TO_BLOCK_TYPE,
    PAGE_TYPE_TO_INTENT,
    ConversionTables,
    default_conversion_tables,
)
from funnel_flow.models.canvas import BlockType, ElementType, StepIntent, SubmitMode
from funnel_flow.models.editor import EditorPageType


def test_default_tables_share_module_tables():
    tables = default_conversion_tables()

    assert tables.page_type_to_intent is PAGE_TYPE_TO_INTENT
    assert tables.node_to_block_type is NODE_TYPE_TO_BLOCK_TYPE
    assert tables.placeholder_block is DEFAULT_PLACEHOLDER_BLOCK


def test_lookups_fall_back():
    tables = ConversionTables()

    assert tables.intent_for_page_type("appointment") == StepIntent.schedule
    assert tables.intent_for_page_type("mystery") == StepIntent.capture
    assert tables.page_type_for_intent("collect") == EditorPageType.landing
    assert tables.page_type_for_intent("unknown") == EditorPageType.landing
    assert tables.block_type_for("form") == BlockType.form_field
    assert tables.block_type_for("widget") == BlockType.custom
    assert tables.element_type_for("sparkle") == ElementType.text
    assert tables.submit_mode_for(StepIntent.complete) == SubmitMode.redirect
    assert tables.submit_mode_for(StepIntent.capture) == SubmitMode.next


def test_tables_can_be_overridden():
    tables = ConversionTables(page_type_to_intent={"landing": StepIntent.collect})

    assert tables.intent_for_page_type("landing") == StepIntent.collect
    assert default_conversion_tables().intent_for_page_type("landing") == StepIntent.capture
