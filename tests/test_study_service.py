import asyncio

import pytest

from conftest import FakeGenerator, deck_json, quiz_json
from studysync.core.errors import BusyError, GenerationError, SynthesisError, ValidationError
from studysync.services.study_service import StudyService


def _class_with_ready_doc(service: StudyService, generator: FakeGenerator):
    module, _ = service.create_class("Biology")
    generator.queue("Cells are the basic unit of life.")
    doc, _ = asyncio.run(service.ingest_document(module.id, "Cells", content="notes about cells"))
    return module, doc


def test_create_class_awards_xp_and_first_class_milestone(service: StudyService) -> None:
    module, update = service.create_class("Biology")
    assert module.name == "Biology"
    assert [m.id for m in update.unlocked] == ["first_class"]
    assert update.xp_gained == 100 + 200
    assert service.progress.total_xp == 300

    _, second = service.create_class("Chemistry")
    assert second.xp_gained == 100
    assert second.unlocked == []


def test_ingest_document_summarizes_and_awards_upload_xp(service: StudyService, generator: FakeGenerator) -> None:
    module, _ = service.create_class("Biology")
    generator.queue("Summary text.")

    doc, update = asyncio.run(service.ingest_document(module.id, "Cells", content="notes"))

    assert doc.summary == "Summary text."
    assert doc.summary_status == "ready"
    assert update.xp_gained == 50


def test_failed_summary_leaves_document_failed_and_surfaces(service: StudyService, generator: FakeGenerator) -> None:
    module, _ = service.create_class("Biology")
    before = service.progress.total_xp
    generator.queue(GenerationError("generation failed after 5 attempts"))

    with pytest.raises(GenerationError):
        asyncio.run(service.ingest_document(module.id, "Cells", content="notes"))

    doc = service.get_class(module.id).documents[0]
    assert doc.summary_status == "failed"
    assert "5 attempts" in (doc.summary_error or "")
    assert service.progress.total_xp == before
    assert not service.is_document_busy(doc)

    generator.queue("Second time lucky.")
    doc, update = asyncio.run(service.summarize_document(module.id, doc.id))
    assert doc.summary_status == "ready"
    assert update.xp_gained == 50


def test_resummarizing_does_not_award_again(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue("New summary.")
    _, update = asyncio.run(service.summarize_document(module.id, doc.id))
    assert update.xp_gained == 0


def test_resummarizing_counts_the_document_once(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    for i in range(4):
        generator.queue(f"Summary {i}")
        asyncio.run(service.summarize_document(module.id, doc.id))

    assert service.store.snapshot().documents_uploaded == 1
    _, update = service.log_assignment(module.id, "Pop quiz", 10)
    assert update.unlocked == []


def test_failed_resummary_keeps_ready_document_usable(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(GenerationError("endpoint down"))

    with pytest.raises(GenerationError):
        asyncio.run(service.summarize_document(module.id, doc.id))

    assert doc.summary_status == "ready"
    assert doc.summary == "Cells are the basic unit of life."
    assert doc.summary_error is None
    generator.queue(quiz_json(1))
    material, _ = asyncio.run(service.generate_material(module.id, doc.id, "quiz"))
    assert material.kind == "quiz"


def test_unexpected_summary_error_does_not_leave_document_pending(
    service: StudyService, generator: FakeGenerator
) -> None:
    module, _ = service.create_class("Biology")
    generator.queue(RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        asyncio.run(service.ingest_document(module.id, "Cells", content="notes"))

    doc = service.get_class(module.id).documents[0]
    assert doc.summary_status == "failed"
    assert doc.summary_error == "boom"
    assert not service.is_document_busy(doc)


def test_study_bug_unlocks_on_fifth_document(service: StudyService, generator: FakeGenerator) -> None:
    module, _ = service.create_class("Biology")
    unlocked = []
    for i in range(5):
        generator.queue(f"Summary {i}")
        _, update = asyncio.run(service.ingest_document(module.id, f"Doc {i}", content="notes"))
        unlocked.extend(m.id for m in update.unlocked)
    assert unlocked == ["study_bug"]


def test_material_generation_requires_ready_summary(service: StudyService) -> None:
    module, _ = service.create_class("Biology")
    doc = service.upload_document(module.id, "Cells", content="notes")
    with pytest.raises(ValidationError):
        asyncio.run(service.generate_material(module.id, doc.id, "quiz"))


def test_generate_material_stores_and_awards(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(quiz_json(3))

    material, update = asyncio.run(service.generate_material(module.id, doc.id, "quiz"))

    assert service.list_materials(module.id) == [material]
    assert material.source_document_id == doc.id
    assert update.xp_gained == 30


def test_malformed_material_is_not_stored(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    xp = service.progress.total_xp
    generator.queue("{ definitely not json")
    with pytest.raises(SynthesisError):
        asyncio.run(service.generate_material(module.id, doc.id, "flashcards"))
    assert service.list_materials(module.id) == []
    assert service.progress.total_xp == xp


def test_duplicate_in_flight_request_is_busy(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    gate = asyncio.Event()

    class SlowGenerator:
        async def generate(self, prompt, expect_json=False, image_payload=None, image_mime_type="image/png"):
            await gate.wait()
            return quiz_json(1)

    service.synthesizer.generator = SlowGenerator()

    async def scenario():
        first = asyncio.create_task(service.generate_material(module.id, doc.id, "quiz"))
        await asyncio.sleep(0)
        assert service.is_document_busy(doc)
        with pytest.raises(BusyError):
            await service.generate_material(module.id, doc.id, "quiz")
        gate.set()
        return await first

    material, _ = asyncio.run(scenario())
    assert material.kind == "quiz"
    assert not service.is_document_busy(doc)


def test_assignment_xp_and_high_achiever(service: StudyService) -> None:
    module, _ = service.create_class("Math")
    _, low = service.log_assignment(module.id, "Quiz 1", 40)
    assert low.xp_gained == 200
    assert low.unlocked == []

    _, high = service.log_assignment(module.id, "Final", 95)
    assert [m.id for m in high.unlocked] == ["high_achiever"]
    assert high.xp_gained == 475 + 750


def test_invalid_grade_awards_nothing(service: StudyService) -> None:
    module, _ = service.create_class("Math")
    xp = service.progress.total_xp
    with pytest.raises(ValidationError):
        service.log_assignment(module.id, "Bad", 120)
    assert service.progress.total_xp == xp


def test_quiz_session_awards_completion_xp_once(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(quiz_json(2))
    quiz, _ = asyncio.run(service.generate_material(module.id, doc.id, "quiz"))

    session = service.start_session(module.id, quiz.id)
    _, correct, update = service.answer(session.id, 0)
    assert correct is True
    assert update is None

    _, correct, update = service.answer(session.id, 1)
    assert correct is True
    assert update is not None
    assert update.xp_gained == 250

    with pytest.raises(ValidationError):
        service.answer(session.id, 0)
    assert service.store.results()[0].score == 100


def test_quiz_master_after_three_passing_quizzes(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(quiz_json(1))
    quiz, _ = asyncio.run(service.generate_material(module.id, doc.id, "quiz"))

    unlocked = []
    for _ in range(3):
        session = service.start_session(module.id, quiz.id)
        _, _, update = service.answer(session.id, 0)
        unlocked.extend(m.id for m in update.unlocked)
    assert unlocked == ["quiz_master"]


def test_flashcard_session_records_mastery_without_xp(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(deck_json(4))
    deck, _ = asyncio.run(service.generate_material(module.id, doc.id, "flashcards"))

    session = service.start_session(module.id, deck.id)
    update = None
    for known in (True, False, True, False):
        service.flip(session.id)
        _, update = service.mark_card(session.id, known)
    assert update is not None
    assert update.xp_gained == 0
    result = service.store.results()[-1]
    assert (result.kind, result.score, result.correct, result.total) == ("flashcards", 50, 2, 4)


def test_wrong_action_for_session_kind(service: StudyService, generator: FakeGenerator) -> None:
    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(deck_json(2))
    deck, _ = asyncio.run(service.generate_material(module.id, doc.id, "flashcards"))
    session = service.start_session(module.id, deck.id)
    with pytest.raises(ValidationError):
        service.answer(session.id, 0)


def test_empty_quiz_cannot_start(service: StudyService, generator: FakeGenerator) -> None:
    from studysync.models.domain import Quiz

    module, doc = _class_with_ready_doc(service, generator)
    quiz = service.store.add_material(module.id, Quiz(title="Empty", source_document_id=doc.id))
    with pytest.raises(ValidationError):
        service.start_session(module.id, quiz.id)


def test_delete_class_drops_its_sessions(service: StudyService, generator: FakeGenerator) -> None:
    from studysync.core.errors import NotFoundError

    module, doc = _class_with_ready_doc(service, generator)
    generator.queue(quiz_json(1))
    quiz, _ = asyncio.run(service.generate_material(module.id, doc.id, "quiz"))
    session = service.start_session(module.id, quiz.id)

    service.delete_class(module.id)

    with pytest.raises(NotFoundError):
        service.get_session(session.id)


def test_progress_view_and_milestone_catalog(service: StudyService) -> None:
    service.create_class("Biology")
    assert service.progress_view() == {"total_xp": 300, "level": 1, "xp_into_level": 300, "xp_to_next_level": 700}
    catalog = {m.id: unlocked for m, unlocked in service.milestone_catalog()}
    assert catalog == {"first_class": True, "study_bug": False, "quiz_master": False, "high_achiever": False}
