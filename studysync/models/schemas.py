from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from studysync.models.domain import Assignment, ContentKind, MaterialKind, Material, SummaryStatus

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


# ==============================================================================
# Payloads the model is asked to return (validated, never coerced)
# ==============================================================================

class QuizQuestionPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    question: NonBlank
    options: List[NonBlank] = Field(..., min_length=4, max_length=4)
    correctIndex: int = Field(..., ge=0, le=3)


class QuizPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    title: NonBlank
    questions: List[QuizQuestionPayload] = Field(..., min_length=1)


class FlashcardPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    front: NonBlank
    back: NonBlank


class DeckPayload(BaseModel):
    model_config = ConfigDict(strict=True)

    title: NonBlank
    cards: List[FlashcardPayload] = Field(..., min_length=1)


# ==============================================================================
# API requests
# ==============================================================================

class ClassCreate(BaseModel):
    name: str


class DocumentCreate(BaseModel):
    title: str
    content: Optional[str] = None
    image_base64: Optional[str] = None
    image_mime_type: str = "image/png"

    @model_validator(mode="after")
    def _one_source(self):
        if (self.content is None) == (self.image_base64 is None):
            raise ValueError("provide exactly one of content or image_base64")
        return self


class AssignmentCreate(BaseModel):
    name: str
    grade: float


class MaterialCreate(BaseModel):
    document_id: str
    kind: MaterialKind


class SessionCreate(BaseModel):
    class_id: str
    material_id: str


class AnswerIn(BaseModel):
    option_index: int


class MarkIn(BaseModel):
    known: bool


# ==============================================================================
# API responses
# ==============================================================================

class DocumentOut(BaseModel):
    id: str
    title: str
    created_at: datetime
    kind: ContentKind
    summary: Optional[str] = None
    summary_status: SummaryStatus
    summary_error: Optional[str] = None
    busy: bool = False


class ClassSummaryOut(BaseModel):
    id: str
    name: str
    color: str
    created_at: datetime
    document_count: int
    assignment_count: int
    material_count: int
    average_grade: Optional[float] = None


class ClassOut(BaseModel):
    id: str
    name: str
    color: str
    created_at: datetime
    documents: List[DocumentOut] = []
    assignments: List[Assignment] = []
    materials: List[Material] = []


class MilestoneOut(BaseModel):
    id: str
    title: str
    description: str
    icon: str
    xp_reward: int
    unlocked: bool = False


class ProgressOut(BaseModel):
    total_xp: int
    level: int
    xp_into_level: int
    xp_to_next_level: int
    level_threshold: int
    unlocked: List[MilestoneOut] = []


class ProgressUpdateOut(BaseModel):
    xp_gained: int
    unlocked: List[MilestoneOut] = []
    progress: ProgressOut


class ClassCreated(BaseModel):
    class_module: ClassOut
    progress_update: ProgressUpdateOut


class DocumentAccepted(BaseModel):
    document: DocumentOut
    summary_scheduled: bool


class DocumentSummarized(BaseModel):
    document: DocumentOut
    progress_update: Optional[ProgressUpdateOut] = None


class AssignmentLogged(BaseModel):
    assignment: Assignment
    progress_update: ProgressUpdateOut


class MaterialCreated(BaseModel):
    material: Material
    progress_update: ProgressUpdateOut


class SessionOut(BaseModel):
    session_id: str
    class_id: str
    material_id: str
    kind: MaterialKind
    title: str
    state: Literal["awaiting_answer", "showing", "scored"]
    index: int
    total: int
    # quiz
    question: Optional[str] = None
    options: Optional[List[str]] = None
    last_answer_correct: Optional[bool] = None
    # flashcards
    face: Optional[Literal["front", "back"]] = None
    card_text: Optional[str] = None
    score: Optional[int] = None


class SessionStep(BaseModel):
    session: SessionOut
    progress_update: Optional[ProgressUpdateOut] = None
