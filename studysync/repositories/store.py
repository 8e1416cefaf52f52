"""In-memory repository for classes, their contents, and study history."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from studysync.core.errors import BusyError, NotFoundError, ValidationError
from studysync.models.domain import (
    CLASS_COLORS,
    Assignment,
    ClassModule,
    Document,
    DomainSnapshot,
    FlashcardDeck,
    Quiz,
    StudyResult,
)
from studysync.services.progression import QUIZ_PASS_SCORE


class DomainStore:
    def __init__(self):
        self._classes: Dict[str, ClassModule] = {}
        self._results: List[StudyResult] = []
        self._busy: Set[str] = set()
        self._classes_created = 0
        self._documents_uploaded = 0
        self._best_grade: Optional[float] = None

    # Classes
    def create_class(self, name: str) -> ClassModule:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Class name is required")
        module = ClassModule(name=name, color=CLASS_COLORS[self._classes_created % len(CLASS_COLORS)])
        self._classes[module.id] = module
        self._classes_created += 1
        return module

    def list_classes(self) -> List[ClassModule]:
        return list(self._classes.values())

    def get_class(self, class_id: str) -> ClassModule:
        module = self._classes.get(class_id)
        if module is None:
            raise NotFoundError(f"Class {class_id} not found")
        return module

    def delete_class(self, class_id: str) -> None:
        module = self.get_class(class_id)
        # documents, assignments and materials go with it
        del self._classes[module.id]

    # Documents
    def add_document(
        self,
        class_id: str,
        title: str,
        content: Optional[str] = None,
        image_payload: Optional[str] = None,
        image_mime_type: Optional[str] = None,
    ) -> Document:
        module = self.get_class(class_id)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Document title is required")
        if (content is None) == (image_payload is None):
            raise ValidationError("Provide exactly one of text content or an image payload")

        if image_payload is not None:
            if not image_payload.strip():
                raise ValidationError("Image payload is empty")
            doc = Document(title=title, kind="image", content=image_payload,
                           image_mime_type=image_mime_type or "image/png")
        else:
            if not content.strip():
                raise ValidationError("Document content is empty")
            doc = Document(title=title, kind="text", content=content)
        module.documents.insert(0, doc)
        return doc

    def get_document(self, class_id: str, document_id: str) -> Document:
        doc = self.get_class(class_id).find_document(document_id)
        if doc is None:
            raise NotFoundError(f"Document {document_id} not found in class {class_id}")
        return doc

    def set_summary(self, class_id: str, document_id: str, summary: str) -> Document:
        doc = self.get_document(class_id, document_id)
        first_success = doc.summary_status != "ready"
        doc.summary = summary
        doc.summary_status = "ready"
        doc.summary_error = None
        if first_success:
            self._documents_uploaded += 1
        return doc

    def mark_summary_failed(self, class_id: str, document_id: str, error: str) -> Document:
        doc = self.get_document(class_id, document_id)
        doc.summary_status = "failed"
        doc.summary_error = error
        return doc

    def delete_document(self, class_id: str, document_id: str) -> None:
        module = self.get_class(class_id)
        doc = self.get_document(class_id, document_id)
        # materials keep their source_document_id and are simply orphaned
        module.documents.remove(doc)

    # Assignments
    def log_assignment(self, class_id: str, name: str, grade: float) -> Assignment:
        module = self.get_class(class_id)
        try:
            assignment = Assignment(name=(name or "").strip(), grade=grade)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid assignment: {_first_error(e)}") from e
        module.assignments.insert(0, assignment)
        if self._best_grade is None or assignment.grade > self._best_grade:
            self._best_grade = assignment.grade
        return assignment

    # Materials
    def add_material(self, class_id: str, material: Union[Quiz, FlashcardDeck]) -> Union[Quiz, FlashcardDeck]:
        module = self.get_class(class_id)
        if module.find_document(material.source_document_id) is None:
            raise ValidationError(
                f"Material source document {material.source_document_id} is not part of class {class_id}"
            )
        module.materials.insert(0, material)
        return material

    def get_material(self, class_id: str, material_id: str) -> Union[Quiz, FlashcardDeck]:
        material = self.get_class(class_id).find_material(material_id)
        if material is None:
            raise NotFoundError(f"Material {material_id} not found in class {class_id}")
        return material

    # Study history
    def record_result(self, result: StudyResult) -> StudyResult:
        self._results.append(result)
        return result

    def results(self) -> List[StudyResult]:
        return list(self._results)

    def snapshot(self) -> DomainSnapshot:
        return DomainSnapshot(
            classes_created=self._classes_created,
            documents_uploaded=self._documents_uploaded,
            quizzes_passed=sum(1 for r in self._results if r.kind == "quiz" and r.score >= QUIZ_PASS_SCORE),
            best_assignment_grade=self._best_grade,
        )

    # In-flight generation requests
    def is_busy(self, key: str) -> bool:
        return key in self._busy

    @contextmanager
    def busy(self, key: str) -> Iterator[None]:
        """Mark ``key`` in flight for the duration of the block; reject duplicates."""
        if key in self._busy:
            raise BusyError(f"A request for {key} is already in progress")
        self._busy.add(key)
        try:
            yield
        finally:
            self._busy.discard(key)


def summary_key(document_id: str) -> str:
    return f"summary:{document_id}"


def material_key(document_id: str, kind: str) -> str:
    return f"material:{document_id}:{kind}"


def _first_error(e: PydanticValidationError) -> str:
    err = e.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))
