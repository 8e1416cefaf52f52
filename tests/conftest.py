from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from studysync.main import app
from studysync.services.study_service import StudyService, get_study_service
from studysync.services.synthesizer import MaterialSynthesizer


class FakeGenerator:
    """Stands in for GenerationClient: replays queued replies in order.

    A queued ``Exception`` instance is raised instead of returned.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def generate(
        self,
        prompt: str,
        expect_json: bool = False,
        image_payload: Any = None,
        image_mime_type: str = "image/png",
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "expect_json": expect_json,
                "image_payload": image_payload,
                "image_mime_type": image_mime_type,
            }
        )
        if not self.replies:
            raise AssertionError("FakeGenerator ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def quiz_json(n: int = 3, title: str = "Cell Biology") -> str:
    return json.dumps(
        {
            "title": title,
            "questions": [
                {"question": f"Question {i}?", "options": ["A", "B", "C", "D"], "correctIndex": i % 4}
                for i in range(n)
            ],
        }
    )


def deck_json(n: int = 4, title: str = "Key Terms") -> str:
    return json.dumps(
        {"title": title, "cards": [{"front": f"Term {i}", "back": f"Definition {i}"} for i in range(n)]}
    )


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def service(generator: FakeGenerator) -> StudyService:
    return StudyService(MaterialSynthesizer(generator))


@pytest.fixture
def client(service: StudyService) -> Iterator[TestClient]:
    app.dependency_overrides[get_study_service] = lambda: service
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
