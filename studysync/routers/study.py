from fastapi import APIRouter, Depends, status

from studysync.models.schemas import AnswerIn, MarkIn, SessionCreate, SessionOut, SessionStep
from studysync.routers.views import session_out, update_out
from studysync.services.study_service import StudyService, get_study_service

router = APIRouter(prefix="/api/study", tags=["Study"])


@router.post("/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
def start_session(payload: SessionCreate, svc: StudyService = Depends(get_study_service)):
    return session_out(svc.start_session(payload.class_id, payload.material_id))


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, svc: StudyService = Depends(get_study_service)):
    return session_out(svc.get_session(session_id))


@router.post("/sessions/{session_id}/answer", response_model=SessionStep)
def answer(session_id: str, payload: AnswerIn, svc: StudyService = Depends(get_study_service)):
    session, correct, update = svc.answer(session_id, payload.option_index)
    return SessionStep(session=session_out(session, last_answer_correct=correct), progress_update=update_out(update, svc))


@router.post("/sessions/{session_id}/flip", response_model=SessionOut)
def flip(session_id: str, svc: StudyService = Depends(get_study_service)):
    return session_out(svc.flip(session_id))


@router.post("/sessions/{session_id}/mark", response_model=SessionStep)
def mark(session_id: str, payload: MarkIn, svc: StudyService = Depends(get_study_service)):
    session, update = svc.mark_card(session_id, payload.known)
    return SessionStep(session=session_out(session), progress_update=update_out(update, svc))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def end_session(session_id: str, svc: StudyService = Depends(get_study_service)):
    svc.end_session(session_id)
