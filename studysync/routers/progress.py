from typing import List

from fastapi import APIRouter, Depends

from studysync.models.schemas import MilestoneOut, ProgressOut
from studysync.routers.views import milestone_out, progress_out
from studysync.services.study_service import StudyService, get_study_service

router = APIRouter(prefix="/api/progress", tags=["Progress"])


@router.get("", response_model=ProgressOut)
def get_progress(svc: StudyService = Depends(get_study_service)):
    return progress_out(svc)


@router.get("/milestones", response_model=List[MilestoneOut])
def list_milestones(svc: StudyService = Depends(get_study_service)):
    return [milestone_out(m, unlocked=unlocked) for m, unlocked in svc.milestone_catalog()]
