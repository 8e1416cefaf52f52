"""Turn-by-turn study sessions over a single material.

A session is a small state machine. Quiz sessions move through
``AwaitingAnswer(0..N-1)`` to ``Scored``; flashcard sessions move through
``Showing(0..M-1, face)`` to ``Scored``. Nothing here does I/O, and a new
session always starts from scratch.

Flashcards are graded by self-reported mastery: the learner marks each card
known or unknown, and the final score is the percentage marked known.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Literal, Optional, Union

from studysync.core.errors import ValidationError
from studysync.models.domain import Card, FlashcardDeck, Question, Quiz

Face = Literal["front", "back"]


@dataclass(frozen=True)
class AwaitingAnswer:
    index: int


@dataclass(frozen=True)
class Showing:
    index: int
    face: Face = "front"


@dataclass(frozen=True)
class Scored:
    score: int


@dataclass(frozen=True)
class SessionOutcome:
    score: int
    total: int
    correct: int


def percent(part: int, whole: int) -> int:
    """Round half up, so 12.5 -> 13 rather than banker's 12."""
    return int(math.floor(100 * part / whole + 0.5))


class QuizSession:
    def __init__(self, quiz: Quiz):
        if not quiz.questions:
            raise ValidationError("Cannot start a quiz with no questions")
        self.quiz = quiz
        self.answers: List[bool] = []
        self.state: Union[AwaitingAnswer, Scored] = AwaitingAnswer(0)

    @property
    def total(self) -> int:
        return len(self.quiz.questions)

    @property
    def finished(self) -> bool:
        return isinstance(self.state, Scored)

    @property
    def current_question(self) -> Optional[Question]:
        if self.finished:
            return None
        return self.quiz.questions[self.state.index]

    @property
    def correct_count(self) -> int:
        return sum(self.answers)

    def answer(self, option_index: int) -> bool:
        """Record an answer for the current question and advance.

        Returns whether the answer was correct. Answers cannot be revised.
        """
        if self.finished:
            raise ValidationError("Quiz is already scored")
        question = self.quiz.questions[self.state.index]
        if not 0 <= option_index < len(question.options):
            raise ValidationError(f"Option index {option_index} is out of range")

        correct = option_index == question.correct_option_index
        self.answers.append(correct)
        if self.state.index < self.total - 1:
            self.state = AwaitingAnswer(self.state.index + 1)
        else:
            self.state = Scored(percent(self.correct_count, self.total))
        return correct

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        if not self.finished:
            return None
        return SessionOutcome(score=self.state.score, total=self.total, correct=self.correct_count)


class FlashcardSession:
    def __init__(self, deck: FlashcardDeck):
        if not deck.cards:
            raise ValidationError("Cannot start a deck with no cards")
        self.deck = deck
        self.marks: List[bool] = []
        self.state: Union[Showing, Scored] = Showing(0)

    @property
    def total(self) -> int:
        return len(self.deck.cards)

    @property
    def finished(self) -> bool:
        return isinstance(self.state, Scored)

    @property
    def current_card(self) -> Optional[Card]:
        if self.finished:
            return None
        return self.deck.cards[self.state.index]

    @property
    def mastered_count(self) -> int:
        return sum(self.marks)

    def flip(self) -> Face:
        if self.finished:
            raise ValidationError("Deck is already scored")
        face: Face = "back" if self.state.face == "front" else "front"
        self.state = Showing(self.state.index, face)
        return face

    def mark_known(self) -> None:
        self._mark(True)

    def mark_unknown(self) -> None:
        self._mark(False)

    def _mark(self, known: bool) -> None:
        if self.finished:
            raise ValidationError("Deck is already scored")
        self.marks.append(known)
        if self.state.index < self.total - 1:
            self.state = Showing(self.state.index + 1, "front")
        else:
            self.state = Scored(percent(self.mastered_count, self.total))

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        if not self.finished:
            return None
        return SessionOutcome(score=self.state.score, total=self.total, correct=self.mastered_count)


StudySession = Union[QuizSession, FlashcardSession]


def start_session(material: Union[Quiz, FlashcardDeck]) -> StudySession:
    if isinstance(material, Quiz):
        return QuizSession(material)
    return FlashcardSession(material)
