"""Turn documents into summaries and structured study materials."""

from __future__ import annotations

import json
import logging
import re
from typing import Optional, Protocol, Union

from pydantic import ValidationError as PydanticValidationError

from studysync.core.config import settings
from studysync.core.errors import SynthesisError, ValidationError
from studysync.models.domain import Card, Document, FlashcardDeck, MaterialKind, Question, Quiz
from studysync.models.schemas import DeckPayload, QuizPayload

logger = logging.getLogger(__name__)

IMAGE_SUMMARY_PROMPT = (
    "Identify the key educational concepts in this image and provide a 4-sentence study summary."
)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class TextGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        expect_json: bool = False,
        image_payload: Union[str, bytes, None] = None,
        image_mime_type: str = "image/png",
    ) -> str: ...


def summary_prompt(content: str, limit: Optional[int] = None) -> str:
    limit = settings.SUMMARY_CONTENT_LIMIT if limit is None else limit
    return (
        "Summarize these student notes into a concise, high-level overview for a study guide. "
        "Write exactly 3 to 4 sentences of plain prose, no lists or headings. "
        f"Notes: {content[:limit]}"
    )


def quiz_prompt(source: str, count: Optional[int] = None) -> str:
    count = count or settings.QUIZ_QUESTION_COUNT
    return (
        f"Generate {count} challenging multiple choice questions based on the following content. "
        "Each question must have exactly 4 options. "
        "Return ONLY a JSON object with this structure: "
        '{ "title": "Quiz Name", "questions": [{ "question": "text", "options": ["A","B","C","D"], "correctIndex": 0 }] }. '
        f"Content: {source}"
    )


def deck_prompt(source: str, count: Optional[int] = None) -> str:
    count = count or settings.DECK_CARD_COUNT
    return (
        f"Generate {count} study flashcards. "
        "Return ONLY a JSON object with this structure: "
        '{ "title": "Deck Name", "cards": [{ "front": "term/question", "back": "definition/answer" }] }. '
        f"Content: {source}"
    )


def strip_code_fences(raw: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one anyway."""
    text = raw.strip()
    m = _FENCE_RE.match(text)
    return m.group(1).strip() if m else text


class MaterialSynthesizer:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def summarize(self, document: Document) -> str:
        if document.kind == "image":
            text = await self.generator.generate(
                IMAGE_SUMMARY_PROMPT,
                expect_json=False,
                image_payload=document.content,
                image_mime_type=document.image_mime_type or "image/png",
            )
        else:
            text = await self.generator.generate(summary_prompt(document.content), expect_json=False)
        return text.strip()

    async def synthesize(self, document: Document, kind: MaterialKind) -> Union[Quiz, FlashcardDeck]:
        if not document.ready:
            raise ValidationError(f"Document {document.id} has no summary yet ({document.summary_status})")

        source = document.summary or document.content
        if kind == "quiz":
            prompt = quiz_prompt(source)
        elif kind == "flashcards":
            prompt = deck_prompt(source)
        else:
            raise ValidationError(f"Unknown material kind: {kind}")

        raw = await self.generator.generate(prompt, expect_json=True)
        try:
            data = json.loads(strip_code_fences(raw))
            if kind == "quiz":
                return _quiz_from(QuizPayload.model_validate(data), document.id)
            return _deck_from(DeckPayload.model_validate(data), document.id)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning("Rejected %s payload for document %s: %s", kind, document.id, e)
            raise SynthesisError("malformed AI response") from e


def _quiz_from(payload: QuizPayload, document_id: str) -> Quiz:
    return Quiz(
        title=payload.title,
        source_document_id=document_id,
        questions=[
            Question(text=q.question, options=list(q.options), correct_option_index=q.correctIndex)
            for q in payload.questions
        ],
    )


def _deck_from(payload: DeckPayload, document_id: str) -> FlashcardDeck:
    return FlashcardDeck(
        title=payload.title,
        source_document_id=document_id,
        cards=[Card(front=c.front, back=c.back) for c in payload.cards],
    )
