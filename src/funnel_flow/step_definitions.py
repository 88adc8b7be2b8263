"""Step capability and intent registry.

One immutable :class:`StepDefinition` per funnel step kind describes what the
kind can do (create or finalize a lead, schedule, emit events), which contact
fields it handles, how its input is checked and which intents the builder may
assign to it. Lookups never raise: unknown kinds fall back to the most
permissive safe defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterator, Mapping, Sequence

from pydantic import EmailStr, TypeAdapter, ValidationError

from .models.canvas import StepIntent

_email_adapter = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class StepCapabilities:
    can_create_lead: bool = False
    can_finalize_lead: bool = False
    can_emit_events: bool = True
    can_schedule: bool = False


@dataclass(frozen=True)
class StepFieldSchema:
    required: Sequence[str] = ()
    optional: Sequence[str] = ()
    extracted: Sequence[str] = ()


@dataclass(frozen=True)
class StepValidation:
    requires_input: bool = False
    input_validator: Callable[[Any], bool] | None = None


@dataclass(frozen=True)
class StepBuilderConfig:
    intent_locked: bool = False
    allowed_intents: Sequence[StepIntent] = (StepIntent.collect,)
    default_intent: StepIntent = StepIntent.collect


@dataclass(frozen=True)
class StepDefinition:
    type: str
    label: str
    description: str
    capabilities: StepCapabilities = field(default_factory=StepCapabilities)
    fields: StepFieldSchema = field(default_factory=StepFieldSchema)
    validation: StepValidation = field(default_factory=StepValidation)
    builder: StepBuilderConfig = field(default_factory=StepBuilderConfig)

    def validate_input(self, value: Any) -> bool:
        validator = self.validation.input_validator
        if validator is None:
            return True
        try:
            return bool(validator(value))
        except (TypeError, ValueError, AttributeError):
            return False


def _is_non_empty_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_answered(value: Any) -> bool:
    return value is not None


def _is_email(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        _email_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def _is_phone(value: Any) -> bool:
    return isinstance(value, str) and len(value) >= 7


def _has_full_contact(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    return bool(value.get("email") and value.get("phone") and value.get("name"))


STEP_DEFINITIONS: Mapping[str, StepDefinition] = MappingProxyType(
    {
        "welcome": StepDefinition(
            type="welcome",
            label="Welcome",
            description="Introduction screen with CTA button",
            capabilities=StepCapabilities(can_emit_events=True),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.collect, StepIntent.complete),
                default_intent=StepIntent.collect,
            ),
        ),
        "text_question": StepDefinition(
            type="text_question",
            label="Text Question",
            description="Free-form text input question",
            capabilities=StepCapabilities(can_create_lead=True),
            fields=StepFieldSchema(optional=("name",), extracted=("name",)),
            validation=StepValidation(requires_input=True, input_validator=_is_non_empty_text),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.collect, StepIntent.capture),
                default_intent=StepIntent.collect,
            ),
        ),
        "multi_choice": StepDefinition(
            type="multi_choice",
            label="Multi Choice",
            description="Multiple choice selection question",
            capabilities=StepCapabilities(can_create_lead=True),
            validation=StepValidation(requires_input=True, input_validator=_is_answered),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.collect,),
                default_intent=StepIntent.collect,
            ),
        ),
        "email_capture": StepDefinition(
            type="email_capture",
            label="Email Capture",
            description="Collects email address - can trigger workflows",
            capabilities=StepCapabilities(can_create_lead=True, can_finalize_lead=True),
            fields=StepFieldSchema(required=("email",), extracted=("email",)),
            validation=StepValidation(requires_input=True, input_validator=_is_email),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.capture, StepIntent.collect),
                default_intent=StepIntent.capture,
            ),
        ),
        "phone_capture": StepDefinition(
            type="phone_capture",
            label="Phone Capture",
            description="Collects phone number - can trigger workflows",
            capabilities=StepCapabilities(can_create_lead=True, can_finalize_lead=True),
            fields=StepFieldSchema(required=("phone",), extracted=("phone",)),
            validation=StepValidation(requires_input=True, input_validator=_is_phone),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.capture, StepIntent.collect),
                default_intent=StepIntent.capture,
            ),
        ),
        "video": StepDefinition(
            type="video",
            label="Video",
            description="Video content with optional CTA",
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.collect,),
                default_intent=StepIntent.collect,
            ),
        ),
        "opt_in": StepDefinition(
            type="opt_in",
            label="Contact Info",
            description="Full contact collection (name, email, phone) - primary capture step",
            capabilities=StepCapabilities(can_create_lead=True, can_finalize_lead=True),
            fields=StepFieldSchema(
                required=("email", "phone", "name"),
                extracted=("email", "phone", "name"),
            ),
            validation=StepValidation(requires_input=True, input_validator=_has_full_contact),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.capture,),
                default_intent=StepIntent.capture,
            ),
        ),
        "embed": StepDefinition(
            type="embed",
            label="Embed/iFrame",
            description="Calendly or other embedded content",
            capabilities=StepCapabilities(can_create_lead=True, can_schedule=True),
            fields=StepFieldSchema(optional=("calendly_booking_data",)),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.schedule, StepIntent.collect),
                default_intent=StepIntent.schedule,
            ),
        ),
        "thank_you": StepDefinition(
            type="thank_you",
            label="Thank You",
            description="Final completion page - never triggers workflows",
            builder=StepBuilderConfig(
                intent_locked=True,
                allowed_intents=(StepIntent.complete,),
                default_intent=StepIntent.complete,
            ),
        ),
        "application_flow": StepDefinition(
            type="application_flow",
            label="Flow Container",
            description="Multi-step interactive flow (Typeform-style)",
            capabilities=StepCapabilities(can_create_lead=True, can_finalize_lead=True),
            fields=StepFieldSchema(
                optional=("email", "phone", "name"),
                extracted=("email", "phone", "name"),
            ),
            validation=StepValidation(requires_input=True),
            builder=StepBuilderConfig(
                allowed_intents=(StepIntent.capture, StepIntent.collect),
                default_intent=StepIntent.capture,
            ),
        ),
    }
)


INTENT_LABELS: Mapping[StepIntent, str] = MappingProxyType(
    {
        StepIntent.capture: "Submit (Send Lead)",
        StepIntent.collect: "Save Progress",
        StepIntent.schedule: "Book a Time",
        StepIntent.complete: "Finish",
    }
)

INTENT_DESCRIPTIONS: Mapping[StepIntent, str] = MappingProxyType(
    {
        StepIntent.capture: "Sends the lead and starts any connected actions.",
        StepIntent.collect: "Saves progress without sending the lead yet.",
        StepIntent.schedule: "Use for scheduling or calendar embeds.",
        StepIntent.complete: "Final step with no further action.",
    }
)

_FALLBACK_INTENTS: tuple[StepIntent, ...] = (StepIntent.collect,)


class StepRegistry:
    """Read-only view over a set of step definitions."""

    def __init__(self, definitions: Mapping[str, StepDefinition]) -> None:
        self._definitions: Mapping[str, StepDefinition] = MappingProxyType(dict(definitions))

    def __contains__(self, step_type: object) -> bool:
        return self.get_step_definition(step_type) is not None

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def get_step_definition(self, step_type: object) -> StepDefinition | None:
        if not isinstance(step_type, str):
            return None
        return self._definitions.get(step_type)

    def get_default_intent(self, step_type: object) -> StepIntent:
        definition = self.get_step_definition(step_type)
        return definition.builder.default_intent if definition else StepIntent.collect

    def get_allowed_intents(self, step_type: object) -> list[StepIntent]:
        definition = self.get_step_definition(step_type)
        return list(definition.builder.allowed_intents if definition else _FALLBACK_INTENTS)

    def is_intent_locked(self, step_type: object) -> bool:
        definition = self.get_step_definition(step_type)
        return definition.builder.intent_locked if definition else False

    def is_valid_intent(self, step_type: object, intent: object) -> bool:
        return any(allowed.value == intent for allowed in self.get_allowed_intents(step_type))

    def can_be_capture(self, step_type: object) -> bool:
        definition = self.get_step_definition(step_type)
        return definition.capabilities.can_finalize_lead if definition else False

    def get_step_type_label(self, step_type: object) -> str:
        definition = self.get_step_definition(step_type)
        if definition:
            return definition.label
        return step_type if isinstance(step_type, str) else ""

    def resolve_intent(self, step_type: object, requested: object = None) -> StepIntent:
        """Intent the builder should store for ``step_type`` given a requested one."""
        default = self.get_default_intent(step_type)
        if self.is_intent_locked(step_type) or requested is None:
            return default
        if self.is_valid_intent(step_type, requested):
            return StepIntent(requested)
        return default


DEFAULT_STEP_REGISTRY = StepRegistry(STEP_DEFINITIONS)


def get_step_definition(step_type: object) -> StepDefinition | None:
    return DEFAULT_STEP_REGISTRY.get_step_definition(step_type)


def get_default_intent(step_type: object) -> StepIntent:
    return DEFAULT_STEP_REGISTRY.get_default_intent(step_type)


def get_allowed_intents(step_type: object) -> list[StepIntent]:
    return DEFAULT_STEP_REGISTRY.get_allowed_intents(step_type)


def is_intent_locked(step_type: object) -> bool:
    return DEFAULT_STEP_REGISTRY.is_intent_locked(step_type)


def is_valid_intent(step_type: object, intent: object) -> bool:
    return DEFAULT_STEP_REGISTRY.is_valid_intent(step_type, intent)


def can_be_capture(step_type: object) -> bool:
    return DEFAULT_STEP_REGISTRY.can_be_capture(step_type)


def get_step_type_label(step_type: object) -> str:
    return DEFAULT_STEP_REGISTRY.get_step_type_label(step_type)


def resolve_intent(step_type: object, requested: object = None) -> StepIntent:
    return DEFAULT_STEP_REGISTRY.resolve_intent(step_type, requested)


__all__ = [
    "DEFAULT_STEP_REGISTRY",
    "INTENT_DESCRIPTIONS",
    "INTENT_LABELS",
    "STEP_DEFINITIONS",
    "StepBuilderConfig",
    "StepCapabilities",
    "StepDefinition",
    "StepFieldSchema",
    "StepRegistry",
    "StepValidation",
    "can_be_capture",
    "get_allowed_intents",
    "get_default_intent",
    "get_step_definition",
    "get_step_type_label",
    "is_intent_locked",
    "is_valid_intent",
    "resolve_intent",
]
