from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from funnel_flow.converter import DocumentConverter
from funnel_flow.document_repository import LocalDocumentRepository
from funnel_flow.logging_config import set_trace_id, setup_logging, trace_from_header
from funnel_flow.models.canvas import Page
from funnel_flow.models.editor import EditorDocument
from funnel_flow.step_definitions import DEFAULT_STEP_REGISTRY, StepDefinition
from funnel_flow.validation import count_capture_steps, validate_funnel_structure


class ToCanvasRequest(BaseModel):
    document: dict[str, Any] | None = Field(default=None, description="Stored editor document")
    slug: str | None = None


class ValidateFunnelRequest(BaseModel):
    steps: list[dict[str, Any]] = Field(default_factory=list)


class ValidateFunnelResponse(BaseModel):
    capture_steps: int
    warnings: list[str]


class StepDefinitionResponse(BaseModel):
    type: str
    label: str
    description: str
    can_create_lead: bool
    can_finalize_lead: bool
    can_emit_events: bool
    can_schedule: bool
    required_fields: list[str]
    optional_fields: list[str]
    extracted_fields: list[str]
    requires_input: bool
    intent_locked: bool
    allowed_intents: list[str]
    default_intent: str

    @staticmethod
    def from_definition(definition: StepDefinition) -> "StepDefinitionResponse":
        return StepDefinitionResponse(
            type=definition.type,
            label=definition.label,
            description=definition.description,
            can_create_lead=definition.capabilities.can_create_lead,
            can_finalize_lead=definition.capabilities.can_finalize_lead,
            can_emit_events=definition.capabilities.can_emit_events,
            can_schedule=definition.capabilities.can_schedule,
            required_fields=list(definition.fields.required),
            optional_fields=list(definition.fields.optional),
            extracted_fields=list(definition.fields.extracted),
            requires_input=definition.validation.requires_input,
            intent_locked=definition.builder.intent_locked,
            allowed_intents=[intent.value for intent in definition.builder.allowed_intents],
            default_intent=definition.builder.default_intent.value,
        )


class StoredPageResponse(BaseModel):
    page: Page
    warnings: list[str]


class StoredDocumentResponse(BaseModel):
    document: EditorDocument
    warnings: list[str]


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
DOCUMENTS_PATH = os.getenv("DOCUMENTS_PATH", "data/documents")
DEFAULT_FUNNEL_SLUG = os.getenv("DEFAULT_FUNNEL_SLUG", "funnel")

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)

app = FastAPI(title="Funnel Flow API", version="0.1.0")

converter = DocumentConverter()
registry = DEFAULT_STEP_REGISTRY
repository = LocalDocumentRepository(base_path=Path(DOCUMENTS_PATH).resolve())


@app.middleware("http")
async def assign_trace_id(request: Request, call_next):
    header = request.headers.get("x-cloud-trace-context")
    set_trace_id(trace_from_header(header, PROJECT_ID) or uuid.uuid4().hex)
    return await call_next(request)


@app.post("/v1/documents:toCanvas", response_model=Page)
async def to_canvas(request: ToCanvasRequest) -> Page:
    return converter.to_flow_canvas(request.document, request.slug or DEFAULT_FUNNEL_SLUG)


@app.post("/v1/documents:toEditor", response_model=EditorDocument)
async def to_editor(page: dict[str, Any]) -> EditorDocument:
    return converter.to_editor_document(page)


@app.post("/v1/funnels:validate", response_model=ValidateFunnelResponse)
async def validate_funnel(request: ValidateFunnelRequest) -> ValidateFunnelResponse:
    return ValidateFunnelResponse(
        capture_steps=count_capture_steps(request.steps, registry),
        warnings=validate_funnel_structure(request.steps, registry),
    )


@app.get("/v1/step-definitions", response_model=list[StepDefinitionResponse])
async def list_step_definitions() -> list[StepDefinitionResponse]:
    return [StepDefinitionResponse.from_definition(definition) for definition in registry]


@app.get("/v1/step-definitions/{step_type}", response_model=StepDefinitionResponse)
async def get_step_definition(step_type: str) -> StepDefinitionResponse:
    definition = registry.get_step_definition(step_type)
    if definition is None:
        raise HTTPException(status_code=404, detail="Step type not found")
    return StepDefinitionResponse.from_definition(definition)


@app.get("/v1/documents/{document_id}", response_model=StoredPageResponse)
async def load_document(document_id: str, slug: str | None = None) -> StoredPageResponse:
    try:
        document = repository.get(document_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
    page = converter.to_flow_canvas(document, slug or DEFAULT_FUNNEL_SLUG)
    return StoredPageResponse(page=page, warnings=validate_funnel_structure(page.steps, registry))


@app.put("/v1/documents/{document_id}", response_model=StoredDocumentResponse)
async def store_document(document_id: str, page: dict[str, Any]) -> StoredDocumentResponse:
    canonical_page = converter.coerce_page(page)
    if canonical_page is None or not canonical_page.steps:
        # Never replace a stored funnel with the placeholder document.
        raise HTTPException(status_code=422, detail="Funnel page has no readable steps")
    document = converter.to_editor_document(canonical_page)
    repository.save(document_id, document)
    canonical = converter.to_flow_canvas(document)
    warnings = validate_funnel_structure(canonical.steps, registry)
    if warnings:
        logger.info(f"Stored document {document_id} with {len(warnings)} structure warnings")
    return StoredDocumentResponse(document=document, warnings=warnings)


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok"})
