"""
Metadata store collaborator.
The pipeline only needs keyed lookups and status updates; the in-memory
implementation backs local development and tests.
"""
import threading
import uuid
from typing import Dict, Optional, Protocol

from testgen.errors import MaterialNotFoundError
from testgen.schemas import ExtractedText, Material, ProcessingStatus


class MaterialStore(Protocol):
    def create(self, title: str, file_url: str, media_type: str) -> Material: ...

    def get(self, material_id: str) -> Optional[Material]: ...

    def set_status(self, material_id: str, status: ProcessingStatus) -> Material: ...

    def save_extracted(self, material_id: str, extracted: ExtractedText) -> Material: ...


class InMemoryMaterialStore:
    def __init__(self) -> None:
        self._materials: Dict[str, Material] = {}
        self._lock = threading.Lock()

    def create(self, title: str, file_url: str, media_type: str = "application/pdf") -> Material:
        material = Material(
            id=uuid.uuid4().hex,
            title=title,
            file_url=file_url,
            media_type=media_type,
        )
        with self._lock:
            self._materials[material.id] = material
        return material

    def get(self, material_id: str) -> Optional[Material]:
        with self._lock:
            return self._materials.get(material_id)

    def _update(self, material_id: str, **changes) -> Material:
        with self._lock:
            material = self._materials.get(material_id)
            if material is None:
                raise MaterialNotFoundError(f"Material '{material_id}' not found")
            updated = material.model_copy(update=changes)
            self._materials[material_id] = updated
            return updated

    def set_status(self, material_id: str, status: ProcessingStatus) -> Material:
        return self._update(material_id, status=status)

    def save_extracted(self, material_id: str, extracted: ExtractedText) -> Material:
        return self._update(material_id, extracted=extracted, status=ProcessingStatus.COMPLETED)
