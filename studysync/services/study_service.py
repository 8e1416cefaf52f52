"""Application layer: one method per user action.

Each action mutates the store, optionally calls the generator, then hands the
result to the progression engine and reports what was earned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Tuple, Union
from uuid import uuid4

from studysync.core.errors import NotFoundError, ValidationError
from studysync.models.domain import (
    Assignment,
    ClassModule,
    Document,
    FlashcardDeck,
    MaterialKind,
    ProgressState,
    Quiz,
    StudyResult,
)
from studysync.repositories.store import DomainStore, material_key, summary_key
from studysync.services import progression
from studysync.services.generation import GenerationClient
from studysync.services.progression import Milestone
from studysync.services.sessions import FlashcardSession, QuizSession, StudySession, start_session
from studysync.services.synthesizer import MaterialSynthesizer

logger = logging.getLogger(__name__)


@dataclass
class ProgressUpdate:
    xp_gained: int
    unlocked: List[Milestone] = field(default_factory=list)


@dataclass
class ActiveSession:
    id: str
    class_id: str
    material_id: str
    machine: StudySession
    recorded: bool = False


class StudyService:
    def __init__(self, synthesizer: MaterialSynthesizer, store: Optional[DomainStore] = None):
        self.synthesizer = synthesizer
        self.store = store or DomainStore()
        self.progress = ProgressState()
        self._sessions: Dict[str, ActiveSession] = {}

    async def aclose(self) -> None:
        close = getattr(self.synthesizer.generator, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------ progress
    def _award(self, xp: int) -> ProgressUpdate:
        before = self.progress.total_xp
        self.progress, unlocked = progression.apply_event(self.progress, self.store.snapshot(), xp)
        for m in unlocked:
            logger.info("Milestone unlocked: %s (+%d XP)", m.id, m.xp_reward)
        return ProgressUpdate(xp_gained=self.progress.total_xp - before, unlocked=unlocked)

    def progress_view(self) -> Dict[str, int]:
        total = self.progress.total_xp
        return {
            "total_xp": total,
            "level": progression.level_of(total),
            "xp_into_level": progression.xp_into_level(total),
            "xp_to_next_level": progression.xp_to_next_level(total),
        }

    def milestone_catalog(self) -> List[Tuple[Milestone, bool]]:
        unlocked = self.progress.unlocked_milestone_ids
        return [(m, m.id in unlocked) for m in progression.MILESTONES]

    # ------------------------------------------------------------------ classes
    def create_class(self, name: str) -> Tuple[ClassModule, ProgressUpdate]:
        module = self.store.create_class(name)
        logger.info("Created class %s (%s)", module.id, module.name)
        return module, self._award(progression.XP_CREATE_CLASS)

    def list_classes(self) -> List[ClassModule]:
        return self.store.list_classes()

    def get_class(self, class_id: str) -> ClassModule:
        return self.store.get_class(class_id)

    def delete_class(self, class_id: str) -> None:
        self.store.delete_class(class_id)
        for sid in [s.id for s in self._sessions.values() if s.class_id == class_id]:
            del self._sessions[sid]
        logger.info("Deleted class %s", class_id)

    # ------------------------------------------------------------------ documents
    def upload_document(
        self,
        class_id: str,
        title: str,
        content: Optional[str] = None,
        image_payload: Optional[str] = None,
        image_mime_type: Optional[str] = None,
    ) -> Document:
        doc = self.store.add_document(class_id, title, content, image_payload, image_mime_type)
        logger.info("Document %s added to class %s, summary pending", doc.id, class_id)
        return doc

    def is_document_busy(self, document: Document) -> bool:
        return self.store.is_busy(summary_key(document.id)) or any(
            self.store.is_busy(material_key(document.id, kind)) for kind in ("quiz", "flashcards")
        )

    async def summarize_document(self, class_id: str, document_id: str) -> Tuple[Document, ProgressUpdate]:
        """Summarize a document. Awards upload XP the first time it succeeds.

        A document without a summary is left ``failed`` when generation fails.
        A ``ready`` document keeps its previous summary and status. The error
        is re-raised in both cases.
        """
        doc = self.store.get_document(class_id, document_id)
        with self.store.busy(summary_key(doc.id)):
            first_time = doc.summary_status != "ready"
            if first_time:
                doc.summary_status = "pending"
                doc.summary_error = None
            try:
                summary = await self.synthesizer.summarize(doc)
            except Exception as e:
                logger.error("Summary failed for document %s: %s", doc.id, e)
                if first_time:
                    self._mark_failed(class_id, doc.id, str(e))
                raise

        doc = self.store.set_summary(class_id, doc.id, summary)
        if not first_time:
            return doc, ProgressUpdate(xp_gained=0)
        return doc, self._award(progression.XP_UPLOAD_DOCUMENT)

    def _mark_failed(self, class_id: str, document_id: str, error: str) -> None:
        # the class or document may have been deleted while the request was in flight
        try:
            self.store.mark_summary_failed(class_id, document_id, error)
        except NotFoundError:
            logger.info("Document %s vanished before its summary failed", document_id)

    async def ingest_document(
        self,
        class_id: str,
        title: str,
        content: Optional[str] = None,
        image_payload: Optional[str] = None,
        image_mime_type: Optional[str] = None,
    ) -> Tuple[Document, ProgressUpdate]:
        doc = self.upload_document(class_id, title, content, image_payload, image_mime_type)
        return await self.summarize_document(class_id, doc.id)

    def delete_document(self, class_id: str, document_id: str) -> None:
        self.store.delete_document(class_id, document_id)

    # ------------------------------------------------------------------ assignments
    def log_assignment(self, class_id: str, name: str, grade: float) -> Tuple[Assignment, ProgressUpdate]:
        assignment = self.store.log_assignment(class_id, name, grade)
        return assignment, self._award(progression.assignment_xp(assignment.grade))

    # ------------------------------------------------------------------ materials
    async def generate_material(
        self, class_id: str, document_id: str, kind: MaterialKind
    ) -> Tuple[Union[Quiz, FlashcardDeck], ProgressUpdate]:
        doc = self.store.get_document(class_id, document_id)
        with self.store.busy(material_key(doc.id, kind)):
            material = await self.synthesizer.synthesize(doc, kind)
        self.store.add_material(class_id, material)
        logger.info("Generated %s %s from document %s", kind, material.id, doc.id)
        return material, self._award(progression.XP_GENERATE_MATERIAL)

    def list_materials(self, class_id: str) -> List[Union[Quiz, FlashcardDeck]]:
        return list(self.store.get_class(class_id).materials)

    # ------------------------------------------------------------------ sessions
    def start_session(self, class_id: str, material_id: str) -> ActiveSession:
        material = self.store.get_material(class_id, material_id)
        session = ActiveSession(
            id=uuid4().hex, class_id=class_id, material_id=material.id, machine=start_session(material)
        )
        self._sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> ActiveSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def end_session(self, session_id: str) -> None:
        self.get_session(session_id)
        del self._sessions[session_id]

    def answer(self, session_id: str, option_index: int) -> Tuple[ActiveSession, bool, Optional[ProgressUpdate]]:
        session = self.get_session(session_id)
        machine = _expect(session, QuizSession)
        correct = machine.answer(option_index)
        return session, correct, self._finish_if_scored(session)

    def flip(self, session_id: str) -> ActiveSession:
        session = self.get_session(session_id)
        _expect(session, FlashcardSession).flip()
        return session

    def mark_card(self, session_id: str, known: bool) -> Tuple[ActiveSession, Optional[ProgressUpdate]]:
        session = self.get_session(session_id)
        machine = _expect(session, FlashcardSession)
        if known:
            machine.mark_known()
        else:
            machine.mark_unknown()
        return session, self._finish_if_scored(session)

    def _finish_if_scored(self, session: ActiveSession) -> Optional[ProgressUpdate]:
        outcome = session.machine.outcome
        if outcome is None or session.recorded:
            return None
        session.recorded = True
        kind = "quiz" if isinstance(session.machine, QuizSession) else "flashcards"
        self.store.record_result(StudyResult(
            class_id=session.class_id,
            material_id=session.material_id,
            kind=kind,
            score=outcome.score,
            total=outcome.total,
            correct=outcome.correct,
        ))
        logger.info("Session %s finished: %s scored %d%%", session.id, kind, outcome.score)
        xp = progression.quiz_completion_xp(outcome.score) if kind == "quiz" else 0
        return self._award(xp)


def _expect(session: ActiveSession, machine_type: type):
    if not isinstance(session.machine, machine_type):
        kind = "quiz" if machine_type is QuizSession else "flashcard"
        raise ValidationError(f"Session {session.id} is not a {kind} session")
    return session.machine


@lru_cache(maxsize=1)
def get_study_service() -> StudyService:
    """Create the process-wide service once."""
    return StudyService(MaterialSynthesizer(GenerationClient()))
