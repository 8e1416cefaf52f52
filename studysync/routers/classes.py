import logging
from typing import List, Union

from fastapi import APIRouter, BackgroundTasks, Depends, status

from studysync.core.config import settings
from studysync.core.errors import StudySyncError
from studysync.models.domain import FlashcardDeck, Quiz
from studysync.models.schemas import (
    AssignmentCreate,
    AssignmentLogged,
    ClassCreate,
    ClassCreated,
    ClassOut,
    ClassSummaryOut,
    DocumentAccepted,
    DocumentCreate,
    DocumentSummarized,
    MaterialCreate,
    MaterialCreated,
)
from studysync.routers.views import class_out, class_summary_out, document_out, update_out
from studysync.services.study_service import StudyService, get_study_service

router = APIRouter(prefix="/api/classes", tags=["Classes"])

logger = logging.getLogger(__name__)


@router.post("", response_model=ClassCreated, status_code=status.HTTP_201_CREATED)
def create_class(payload: ClassCreate, svc: StudyService = Depends(get_study_service)):
    module, update = svc.create_class(payload.name)
    return ClassCreated(class_module=class_out(module, svc), progress_update=update_out(update, svc))


@router.get("", response_model=List[ClassSummaryOut])
def list_classes(svc: StudyService = Depends(get_study_service)):
    return [class_summary_out(m) for m in svc.list_classes()]


@router.get("/{class_id}", response_model=ClassOut)
def get_class(class_id: str, svc: StudyService = Depends(get_study_service)):
    return class_out(svc.get_class(class_id), svc)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_class(class_id: str, svc: StudyService = Depends(get_study_service)):
    svc.delete_class(class_id)


# ==============================================================================
# Documents
# ==============================================================================

async def _summarize_in_background(svc: StudyService, class_id: str, document_id: str):
    try:
        await svc.summarize_document(class_id, document_id)
    except StudySyncError as e:
        # already recorded on the document as summary_status="failed"
        logger.error("Background summary for document %s failed: %s", document_id, e)


@router.post(
    "/{class_id}/documents",
    response_model=DocumentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def upload_document(
    class_id: str,
    payload: DocumentCreate,
    bg: BackgroundTasks,
    svc: StudyService = Depends(get_study_service),
):
    doc = svc.upload_document(
        class_id,
        payload.title,
        content=payload.content,
        image_payload=payload.image_base64,
        image_mime_type=payload.image_mime_type,
    )
    scheduled = settings.AUTO_GENERATE_SUMMARIES
    if scheduled:
        bg.add_task(_summarize_in_background, svc, class_id, doc.id)
    return DocumentAccepted(document=document_out(doc, svc, scheduled=scheduled), summary_scheduled=scheduled)


@router.post("/{class_id}/documents/{document_id}/summary", response_model=DocumentSummarized)
async def summarize_document(class_id: str, document_id: str, svc: StudyService = Depends(get_study_service)):
    doc, update = await svc.summarize_document(class_id, document_id)
    return DocumentSummarized(document=document_out(doc, svc), progress_update=update_out(update, svc))


@router.delete("/{class_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(class_id: str, document_id: str, svc: StudyService = Depends(get_study_service)):
    svc.delete_document(class_id, document_id)


# ==============================================================================
# Assignments
# ==============================================================================

@router.post("/{class_id}/assignments", response_model=AssignmentLogged, status_code=status.HTTP_201_CREATED)
def log_assignment(class_id: str, payload: AssignmentCreate, svc: StudyService = Depends(get_study_service)):
    assignment, update = svc.log_assignment(class_id, payload.name, payload.grade)
    return AssignmentLogged(assignment=assignment, progress_update=update_out(update, svc))


# ==============================================================================
# Materials
# ==============================================================================

@router.post("/{class_id}/materials", response_model=MaterialCreated, status_code=status.HTTP_201_CREATED)
async def generate_material(class_id: str, payload: MaterialCreate, svc: StudyService = Depends(get_study_service)):
    material, update = await svc.generate_material(class_id, payload.document_id, payload.kind)
    return MaterialCreated(material=material, progress_update=update_out(update, svc))


@router.get("/{class_id}/materials", response_model=List[Union[Quiz, FlashcardDeck]])
def list_materials(class_id: str, svc: StudyService = Depends(get_study_service)):
    return svc.list_materials(class_id)
