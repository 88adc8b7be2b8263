from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .dictionaries import CANVAS_STEP_KINDS
from .models.canvas import Page, StepIntent
from .step_definitions import DEFAULT_STEP_REGISTRY, StepRegistry

logger = logging.getLogger(__name__)

NO_SUBMIT_STEP_WARNING = (
    "No submit step found. Funnels should have at least one step that sends a lead."
)
MULTIPLE_SUBMIT_STEPS_WARNING = (
    "Multiple submit steps detected ({count}). "
    "Keep only one submit step to avoid duplicate sends."
)
MISSING_THANK_YOU_WARNING = "Consider adding a Thank You page as the final step."

THANK_YOU_STEP_KIND = "thank_you"


def _read(step: Any, key: str) -> Any:
    if isinstance(step, Mapping):
        return step.get(key)
    return getattr(step, key, None)


def _tag(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def step_kind(step: Any) -> str | None:
    """Registry kind of a step record, canonical step or mapping."""
    kind = _tag(_read(step, "step_type"))
    if not isinstance(kind, str):
        return None
    return CANVAS_STEP_KINDS.get(kind, kind)


def explicit_intent(step: Any) -> str | None:
    intent = _tag(_read(step, "step_intent"))
    if intent:
        return intent
    content = _read(step, "content")
    if isinstance(content, Mapping):
        return _tag(content.get("intent")) or None
    return None


def effective_intent(step: Any, registry: StepRegistry = DEFAULT_STEP_REGISTRY) -> str:
    return explicit_intent(step) or registry.get_default_intent(step_kind(step)).value


def count_capture_steps(
    steps: Iterable[Any] | None,
    registry: StepRegistry = DEFAULT_STEP_REGISTRY,
) -> int:
    return sum(
        1 for step in steps or () if effective_intent(step, registry) == StepIntent.capture.value
    )


def validate_funnel_structure(
    steps: Sequence[Any] | None,
    registry: StepRegistry = DEFAULT_STEP_REGISTRY,
) -> list[str]:
    """Advisory warnings about the shape of a funnel; never raises."""
    steps = list(steps or ())
    warnings: list[str] = []

    capture_count = count_capture_steps(steps, registry)
    if capture_count == 0:
        warnings.append(NO_SUBMIT_STEP_WARNING)
    elif capture_count > 1:
        warnings.append(MULTIPLE_SUBMIT_STEPS_WARNING.format(count=capture_count))

    if steps and step_kind(steps[-1]) != THANK_YOU_STEP_KIND:
        warnings.append(MISSING_THANK_YOU_WARNING)

    if warnings:
        logger.debug("Funnel structure warnings", extra={"extra": {"warnings": warnings}})
    return warnings


def validate_page(page: Page, registry: StepRegistry = DEFAULT_STEP_REGISTRY) -> list[str]:
    return validate_funnel_structure(page.steps, registry)


__all__ = [
    "MISSING_THANK_YOU_WARNING",
    "MULTIPLE_SUBMIT_STEPS_WARNING",
    "NO_SUBMIT_STEP_WARNING",
    "count_capture_steps",
    "effective_intent",
    "explicit_intent",
    "step_kind",
    "validate_funnel_structure",
    "validate_page",
]
