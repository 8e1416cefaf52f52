from typing import Optional

from studysync.models.domain import ClassModule, Document
from studysync.models.schemas import (
    ClassOut,
    ClassSummaryOut,
    DocumentOut,
    MilestoneOut,
    ProgressOut,
    ProgressUpdateOut,
    SessionOut,
)
from studysync.services import progression
from studysync.services.progression import Milestone
from studysync.services.sessions import AwaitingAnswer, QuizSession, Scored, Showing
from studysync.services.study_service import ActiveSession, ProgressUpdate, StudyService


def milestone_out(m: Milestone, unlocked: bool = True) -> MilestoneOut:
    return MilestoneOut(
        id=m.id, title=m.title, description=m.description, icon=m.icon, xp_reward=m.xp_reward, unlocked=unlocked
    )


def progress_out(svc: StudyService) -> ProgressOut:
    return ProgressOut(
        **svc.progress_view(),
        level_threshold=progression.LEVEL_THRESHOLD,
        unlocked=[milestone_out(m) for m, unlocked in svc.milestone_catalog() if unlocked],
    )


def update_out(update: Optional[ProgressUpdate], svc: StudyService) -> Optional[ProgressUpdateOut]:
    if update is None:
        return None
    return ProgressUpdateOut(
        xp_gained=update.xp_gained,
        unlocked=[milestone_out(m) for m in update.unlocked],
        progress=progress_out(svc),
    )


def document_out(doc: Document, svc: StudyService, scheduled: bool = False) -> DocumentOut:
    return DocumentOut(
        id=doc.id,
        title=doc.title,
        created_at=doc.created_at,
        kind=doc.kind,
        summary=doc.summary,
        summary_status=doc.summary_status,
        summary_error=doc.summary_error,
        busy=scheduled or svc.is_document_busy(doc),
    )


def class_out(module: ClassModule, svc: StudyService) -> ClassOut:
    return ClassOut(
        id=module.id,
        name=module.name,
        color=module.color,
        created_at=module.created_at,
        documents=[document_out(d, svc) for d in module.documents],
        assignments=list(module.assignments),
        materials=list(module.materials),
    )


def class_summary_out(module: ClassModule) -> ClassSummaryOut:
    grades = [a.grade for a in module.assignments]
    return ClassSummaryOut(
        id=module.id,
        name=module.name,
        color=module.color,
        created_at=module.created_at,
        document_count=len(module.documents),
        assignment_count=len(module.assignments),
        material_count=len(module.materials),
        average_grade=round(sum(grades) / len(grades), 1) if grades else None,
    )


def session_out(session: ActiveSession, last_answer_correct: Optional[bool] = None) -> SessionOut:
    machine = session.machine
    is_quiz = isinstance(machine, QuizSession)
    material = machine.quiz if is_quiz else machine.deck
    out = SessionOut(
        session_id=session.id,
        class_id=session.class_id,
        material_id=session.material_id,
        kind=material.kind,
        title=material.title,
        state="scored",
        index=machine.total,
        total=machine.total,
        last_answer_correct=last_answer_correct,
    )

    state = machine.state
    if isinstance(state, Scored):
        out.score = state.score
    elif isinstance(state, AwaitingAnswer):
        question = machine.current_question
        out.state = "awaiting_answer"
        out.index = state.index
        out.question = question.text
        out.options = list(question.options)
    elif isinstance(state, Showing):
        card = machine.current_card
        out.state = "showing"
        out.index = state.index
        out.face = state.face
        out.card_text = card.front if state.face == "front" else card.back
    return out
