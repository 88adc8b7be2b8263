from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from .models.editor import EditorDocument

logger = logging.getLogger(__name__)


class DocumentRepository(Protocol):
    def get(self, document_id: str) -> EditorDocument:
        ...

    def save(self, document_id: str, document: EditorDocument) -> None:
        ...


class LocalDocumentRepository:
    """Stores editor documents as ``<document_id>.json`` files under ``base_path``."""

    def __init__(self, *, base_path: Path) -> None:
        self._base_path = base_path

    def get(self, document_id: str) -> EditorDocument:
        file_path = self._path_for(document_id)
        if not file_path.exists():
            raise FileNotFoundError(f"Editor document not found: {file_path}")
        with file_path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        return EditorDocument.model_validate(data)

    def save(self, document_id: str, document: EditorDocument) -> None:
        file_path = self._path_for(document_id)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        payload = document.model_dump(mode="json", by_alias=True)
        with file_path.open("w", encoding="utf-8") as fp:
            json.dump(payload, fp, ensure_ascii=False, indent=2)
        logger.info(f"Stored editor document {document_id} ({len(document.pages)} pages)")

    def _path_for(self, document_id: str) -> Path:
        safe = document_id.replace("/", "-").replace("\\", "-")
        return self._base_path / f"{safe}.json"


__all__ = ["DocumentRepository", "LocalDocumentRepository"]
