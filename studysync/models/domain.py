"""In-memory domain entities: classes and what they own, plus progress."""

from datetime import date as Date, datetime, timezone
from typing import Annotated, FrozenSet, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_id() -> str:
    return uuid4().hex


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


ContentKind = Literal["text", "image"]
SummaryStatus = Literal["pending", "ready", "failed"]
MaterialKind = Literal["quiz", "flashcards"]

CLASS_COLORS = ["blue", "purple", "emerald", "rose", "amber"]


class Document(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    created_at: datetime = Field(default_factory=now_utc)
    kind: ContentKind = "text"
    # note text, or the base64 image payload exactly as the caller handed it over
    content: str = ""
    image_mime_type: Optional[str] = None
    summary: Optional[str] = None
    summary_status: SummaryStatus = "pending"
    summary_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.summary_status == "ready"


class Assignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    grade: float = Field(..., ge=0, le=100)
    date: Date = Field(default_factory=Date.today)


class Question(BaseModel):
    text: str
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_option_index: int = Field(..., ge=0, le=3)

    @model_validator(mode="after")
    def _index_in_options(self):
        if self.correct_option_index >= len(self.options):
            raise ValueError("correct_option_index is outside the options list")
        return self


class Card(BaseModel):
    front: str
    back: str


class Quiz(BaseModel):
    kind: Literal["quiz"] = "quiz"
    id: str = Field(default_factory=new_id)
    title: str
    source_document_id: str
    created_at: datetime = Field(default_factory=now_utc)
    questions: List[Question] = []


class FlashcardDeck(BaseModel):
    kind: Literal["flashcards"] = "flashcards"
    id: str = Field(default_factory=new_id)
    title: str
    source_document_id: str
    created_at: datetime = Field(default_factory=now_utc)
    cards: List[Card] = []


Material = Annotated[Union[Quiz, FlashcardDeck], Field(discriminator="kind")]


class ClassModule(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    color: str = CLASS_COLORS[0]
    created_at: datetime = Field(default_factory=now_utc)
    # newest first, the order the dashboard lists them in
    documents: List[Document] = []
    assignments: List[Assignment] = []
    materials: List[Material] = []

    def find_document(self, document_id: str) -> Optional[Document]:
        return next((d for d in self.documents if d.id == document_id), None)

    def find_material(self, material_id: str) -> Optional[Union[Quiz, FlashcardDeck]]:
        return next((m for m in self.materials if m.id == material_id), None)


class StudyResult(BaseModel):
    """A finished study session, as recorded for milestone counting."""

    model_config = ConfigDict(frozen=True)

    class_id: str
    material_id: str
    kind: MaterialKind
    score: int
    total: int
    correct: int
    completed_at: datetime = Field(default_factory=now_utc)


class DomainSnapshot(BaseModel):
    """Counters the milestone predicates read. Lifetime totals, never decremented."""

    model_config = ConfigDict(frozen=True)

    classes_created: int = 0
    documents_uploaded: int = 0
    quizzes_passed: int = 0
    best_assignment_grade: Optional[float] = None


class ProgressState(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_xp: int = Field(0, ge=0)
    unlocked_milestone_ids: FrozenSet[str] = frozenset()
