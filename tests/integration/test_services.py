"""Integration tests for the services against an in-memory database."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academia.enrollment.rules import EnrollmentLimits
from academia.exceptions import (
    DuplicateRecordError,
    InvalidFilterError,
    RecordNotFoundError,
    RelatedRecordNotFoundError,
    SelectionRejectedError,
    TeachingLoadExceededError,
    ValidationError,
)
from academia.models import Enrollment, Professor, Subject
from academia.services import (
    EnrollmentService,
    ProfessorService,
    StudentService,
    SubjectService,
)


async def _professor(db: AsyncSession, name="Dr. Carl Rhodes", **kw):
    data = {"name": name, "email": f"{name.split()[-1].lower()}@university.edu"}
    data.update(kw)
    return await ProfessorService(db).create(**data)


async def _subject(db: AsyncSession, name, professor_id, **kw):
    return await SubjectService(db).create(name=name, professor_id=professor_id, **kw)


async def _student(db: AsyncSession, name="Ann Gardner", **kw):
    data = {"name": name, "email": f"{name.replace(' ', '.').lower()}@student.edu"}
    data.update(kw)
    return await StudentService(db).create(**data)


class TestBaseService:
    """CRUD behaviour shared by every service."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_timestamps_and_version(self, db_session):
        student = await _student(db_session)

        assert len(student.id) == 32
        assert student.created_at is not None
        assert student.updated_at is not None
        assert student.version == 1

    @pytest.mark.asyncio
    async def test_get_by_id_absent_returns_none(self, db_session):
        assert await StudentService(db_session).get_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_update_merges_and_bumps_version(self, db_session):
        service = StudentService(db_session)
        student = await _student(db_session, phone="555-0100")

        updated = await service.update(student.id, semester=3)

        assert updated.semester == 3
        assert updated.phone == "555-0100"
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_update_absent_raises_not_found(self, db_session):
        with pytest.raises(RecordNotFoundError) as exc_info:
            await StudentService(db_session).update("missing", name="X")

        assert exc_info.value.model_name == "Student"

    @pytest.mark.asyncio
    async def test_update_unknown_field_rejected(self, db_session):
        student = await _student(db_session)

        with pytest.raises(InvalidFilterError):
            await StudentService(db_session).update(student.id, nickname="Annie")

    @pytest.mark.asyncio
    async def test_delete_then_get_returns_none(self, db_session):
        service = StudentService(db_session)
        student = await _student(db_session)

        await service.delete(student.id)

        assert await service.get_by_id(student.id) is None

    @pytest.mark.asyncio
    async def test_delete_absent_raises_not_found(self, db_session):
        with pytest.raises(RecordNotFoundError):
            await StudentService(db_session).delete("missing")

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, db_session):
        await _student(db_session, email="ann@student.edu")

        with pytest.raises(DuplicateRecordError):
            await _student(db_session, name="Other Ann", email="ANN@student.edu ")

        # Session is usable after the rollback
        assert await StudentService(db_session).count() == 1

    @pytest.mark.asyncio
    async def test_find_with_invalid_filter(self, db_session):
        with pytest.raises(InvalidFilterError):
            await SubjectService(db_session).find(colour="red")

    @pytest.mark.asyncio
    async def test_get_many(self, db_session):
        professor = await _professor(db_session, max_subjects=3)
        a = await _subject(db_session, "B Subject", professor.id)
        b = await _subject(db_session, "A Subject", professor.id)
        await _subject(db_session, "C Subject", professor.id)

        found = await SubjectService(db_session).get_many([a.id, b.id, "missing"])

        assert [subject.name for subject in found] == ["A Subject", "B Subject"]
        assert await SubjectService(db_session).get_many([]) == []


class TestStudentService:
    @pytest.mark.asyncio
    async def test_new_student_has_empty_enrollment(self, db_session):
        service = StudentService(db_session)
        student = await _student(db_session)

        document = await service.to_document(student)

        assert document.subjects == []
        assert document.professors == []
        assert document.credits == 0
        assert document.max_credits == 9

    @pytest.mark.asyncio
    async def test_get_by_email_is_case_insensitive(self, db_session):
        student = await _student(db_session, email="Ann.Gardner@Student.edu")

        found = await StudentService(db_session).get_by_email(" ANN.GARDNER@student.edu")

        assert found.id == student.id

    @pytest.mark.asyncio
    async def test_search(self, db_session):
        await _student(db_session, "Ann Gardner")
        await _student(db_session, "Charles Lopez")

        found = await StudentService(db_session).search("lopez")

        assert [student.name for student in found] == ["Charles Lopez"]

    @pytest.mark.asyncio
    async def test_derived_fields_and_queries(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes")
        lowe = await _professor(db_session, "Dr. Mary Lowe")
        calculus = await _subject(db_session, "Calculus I", rhodes.id, credits=3)
        physics = await _subject(db_session, "General Physics", lowe.id, credits=4)
        student = await _student(db_session, max_credits=12)
        other = await _student(db_session, "Charles Lopez")
        await EnrollmentService(db_session).save_selection(
            student.id, [calculus.id, physics.id]
        )
        await EnrollmentService(db_session).save_selection(other.id, [physics.id])

        service = StudentService(db_session)
        document = await service.to_document(await service.get_by_id(student.id))

        assert set(document.subjects) == {calculus.id, physics.id}
        assert set(document.professors) == {rhodes.id, lowe.id}
        assert document.credits == 7
        assert {s.id for s in await service.find_by_subject(physics.id)} == {
            student.id,
            other.id,
        }
        assert [s.id for s in await service.find_by_professor(rhodes.id)] == [student.id]

    @pytest.mark.asyncio
    async def test_delete_removes_enrollments(self, db_session):
        professor = await _professor(db_session)
        subject = await _subject(db_session, "Calculus I", professor.id)
        student = await _student(db_session)
        await EnrollmentService(db_session).save_selection(student.id, [subject.id])
        version = (await SubjectService(db_session).get_by_id(subject.id)).version

        await StudentService(db_session).delete(student.id)

        count = await db_session.scalar(select(func.count(Enrollment.id)))
        assert count == 0
        subject = await SubjectService(db_session).get_by_id(subject.id)
        assert subject.version == version + 1
        documents = await SubjectService(db_session).to_documents([subject])
        assert documents[0].enrolled == 0


class TestSubjectService:
    @pytest.mark.asyncio
    async def test_create_requires_existing_professor(self, db_session):
        with pytest.raises(RelatedRecordNotFoundError):
            await _subject(db_session, "Calculus I", "missing")

    @pytest.mark.asyncio
    async def test_create_respects_teaching_load(self, db_session):
        professor = await _professor(db_session, max_subjects=1)
        await _subject(db_session, "Calculus I", professor.id)

        with pytest.raises(TeachingLoadExceededError):
            await _subject(db_session, "Calculus II", professor.id)

    @pytest.mark.asyncio
    async def test_create_bumps_professor_version(self, db_session):
        professor = await _professor(db_session)

        await _subject(db_session, "Calculus I", professor.id)

        refreshed = await db_session.get(Professor, professor.id)
        assert refreshed.version == 2

    @pytest.mark.asyncio
    async def test_listing_by_name(self, db_session):
        professor = await _professor(db_session, max_subjects=3)
        await _subject(db_session, "Statistics", professor.id)
        await _subject(db_session, "Art History", professor.id, is_active=False)
        await _subject(db_session, "Microbiology", professor.id)
        service = SubjectService(db_session)

        assert [s.name for s in await service.get_all()] == [
            "Art History",
            "Microbiology",
            "Statistics",
        ]
        assert [s.name for s in await service.get_active()] == [
            "Microbiology",
            "Statistics",
        ]
        assert [s.name for s in await service.find_by_professor(professor.id, False)] == [
            "Art History",
            "Microbiology",
            "Statistics",
        ]
        assert [s.name for s in await service.search("micro")] == ["Microbiology"]

    @pytest.mark.asyncio
    async def test_get_available_skips_full(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes")
        lowe = await _professor(db_session, "Dr. Mary Lowe")
        small = await _subject(db_session, "Seminar", rhodes.id, capacity=1)
        await _subject(db_session, "Lecture", lowe.id, capacity=100)
        student = await _student(db_session)
        await EnrollmentService(db_session).save_selection(student.id, [small.id])

        available = await SubjectService(db_session).get_available()

        assert [subject.name for subject in available] == ["Lecture"]

    @pytest.mark.asyncio
    async def test_delete_removes_enrollments(self, db_session):
        professor = await _professor(db_session)
        subject = await _subject(db_session, "Calculus I", professor.id)
        student = await _student(db_session)
        await EnrollmentService(db_session).save_selection(student.id, [subject.id])

        await SubjectService(db_session).delete(subject.id)

        document = await StudentService(db_session).to_document(
            await StudentService(db_session).get_by_id(student.id)
        )
        assert document.subjects == []
        assert document.credits == 0

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_enrolled(self, db_session):
        professor = await _professor(db_session)
        seminar_id = (await _subject(db_session, "Seminar", professor.id, capacity=2)).id
        enrollment = EnrollmentService(db_session)
        for name in ("Ann Gardner", "Charles Lopez"):
            student = await _student(db_session, name)
            await enrollment.save_selection(student.id, [seminar_id])
        service = SubjectService(db_session)

        with pytest.raises(ValidationError):
            await service.update(seminar_id, capacity=1)

        updated = await service.update(seminar_id, capacity=2, name="Seminar II")
        assert updated.capacity == 2
        assert updated.name == "Seminar II"


class TestProfessorService:
    @pytest.mark.asyncio
    async def test_document_lists_owned_subjects(self, db_session):
        professor = await _professor(db_session)
        subject = await _subject(db_session, "Calculus I", professor.id)

        document = await ProfessorService(db_session).to_document(
            await ProfessorService(db_session).get_by_id(professor.id)
        )

        assert document.subjects == [subject.id]

    @pytest.mark.asyncio
    async def test_delete_with_subjects_rejected(self, db_session):
        professor = await _professor(db_session)
        await _subject(db_session, "Calculus I", professor.id)

        with pytest.raises(ValidationError):
            await ProfessorService(db_session).delete(professor.id)

    @pytest.mark.asyncio
    async def test_assign_subject_transfers_ownership(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes")
        lowe = await _professor(db_session, "Dr. Mary Lowe")
        subject = await _subject(db_session, "Calculus I", rhodes.id)
        service = ProfessorService(db_session)

        professor, moved, previous_id = await service.assign_subject(lowe.id, subject.id)

        assert previous_id == rhodes.id
        assert moved.professor_id == lowe.id
        owned = await service.subjects_by_professor([rhodes.id, lowe.id])
        assert owned.get(rhodes.id, []) == []
        assert owned[lowe.id] == [subject.id]
        assert professor.version == 2

    @pytest.mark.asyncio
    async def test_assign_subject_errors(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes")
        busy = await _professor(db_session, "Dr. Mary Lowe", max_subjects=1)
        subject = await _subject(db_session, "Calculus I", rhodes.id)
        await _subject(db_session, "Physics", busy.id)
        service = ProfessorService(db_session)

        with pytest.raises(ValidationError):
            await service.assign_subject(rhodes.id, subject.id)
        with pytest.raises(TeachingLoadExceededError):
            await service.assign_subject(busy.id, subject.id)
        with pytest.raises(RecordNotFoundError):
            await service.assign_subject(rhodes.id, "missing")
        with pytest.raises(RecordNotFoundError):
            await service.assign_subject("missing", subject.id)

    @pytest.mark.asyncio
    async def test_validate_distribution(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes", max_subjects=2)
        await _subject(db_session, "Calculus I", rhodes.id)
        service = ProfessorService(db_session)

        assert (await service.validate_distribution()).is_valid is True

        await service.update(rhodes.id, max_subjects=0, is_active=False)
        report = await service.validate_distribution()

        assert report.is_valid is False
        assert any("maximum 0" in error for error in report.errors)
        assert any("inactive" in error for error in report.errors)

    @pytest.mark.asyncio
    async def test_find_by_subject_and_search(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes")
        await _professor(db_session, "Dr. Mary Lowe", is_active=False)
        subject = await _subject(db_session, "Calculus I", rhodes.id)
        service = ProfessorService(db_session)

        assert [p.id for p in await service.find_by_subject(subject.id)] == [rhodes.id]
        assert [p.name for p in await service.search("dr.")] == ["Dr. Carl Rhodes"]
        assert [p.name for p in await service.get_active()] == ["Dr. Carl Rhodes"]


class TestEnrollmentService:
    """Saving a selection in one transaction.

    A rejected save rolls the session back and expires loaded rows, so the
    tests keep plain ids around instead of ORM objects.
    """

    @pytest.fixture
    async def catalog(self, db_session):
        rhodes = await _professor(db_session, "Dr. Carl Rhodes", max_subjects=3)
        lowe = await _professor(db_session, "Dr. Mary Lowe")
        garner = await _professor(db_session, "Prof. John Garner")
        martin = await _professor(db_session, "Dr. Ann Martin")
        subjects = {
            "calculus": await _subject(db_session, "Calculus I", rhodes.id),
            "algebra": await _subject(db_session, "Linear Algebra", rhodes.id),
            "physics": await _subject(db_session, "General Physics", lowe.id),
            "chemistry": await _subject(db_session, "Organic Chemistry", garner.id),
            "programming": await _subject(db_session, "Programming I", martin.id),
        }
        return {key: subject.id for key, subject in subjects.items()}

    @pytest.fixture
    async def student_id(self, db_session):
        return (await _student(db_session)).id

    @pytest.mark.asyncio
    async def test_save_adds_and_removes(self, db_session, catalog, student_id):
        service = EnrollmentService(db_session)

        first = await service.save_selection(
            student_id, [catalog["calculus"], catalog["physics"]]
        )
        second = await service.save_selection(
            student_id, [catalog["physics"], catalog["chemistry"]]
        )

        assert first.added == sorted([catalog["calculus"], catalog["physics"]])
        assert second.added == [catalog["chemistry"]]
        assert second.removed == [catalog["calculus"]]
        assert {subject.id for subject in second.subjects} == {
            catalog["calculus"],
            catalog["chemistry"],
        }
        assert set(await service.subject_ids_for(student_id)) == {
            catalog["physics"],
            catalog["chemistry"],
        }
        counts = await SubjectService(db_session).enrolled_counts(
            [catalog["calculus"], catalog["physics"]]
        )
        assert counts == {catalog["physics"]: 1}

    @pytest.mark.asyncio
    async def test_save_bumps_versions(self, db_session, catalog, student_id):
        outcome = await EnrollmentService(db_session).save_selection(
            student_id, [catalog["physics"]]
        )

        assert outcome.student.version == 2
        assert outcome.subjects[0].version == 2

    @pytest.mark.asyncio
    async def test_identical_selection_changes_nothing(
        self, db_session, catalog, student_id
    ):
        service = EnrollmentService(db_session)
        await service.save_selection(student_id, [catalog["physics"]])

        outcome = await service.save_selection(student_id, [catalog["physics"]])

        assert outcome.changed is False
        assert outcome.student.version == 2

    @pytest.mark.asyncio
    async def test_rejection_leaves_enrollment_intact(
        self, db_session, catalog, student_id
    ):
        service = EnrollmentService(db_session)
        await service.save_selection(student_id, [catalog["physics"]])

        with pytest.raises(SelectionRejectedError) as exc_info:
            await service.save_selection(
                student_id, [catalog["calculus"], catalog["algebra"]]
            )

        assert exc_info.value.reason == "DUPLICATE_PROFESSOR"
        assert await service.subject_ids_for(student_id) == [catalog["physics"]]
        calculus = await db_session.get(Subject, catalog["calculus"])
        assert calculus.version == 1

    @pytest.mark.asyncio
    async def test_rejects_too_many_subjects(self, db_session, catalog):
        student_id = (await _student(db_session, max_credits=20)).id

        with pytest.raises(SelectionRejectedError) as exc_info:
            await EnrollmentService(db_session).save_selection(
                student_id,
                [
                    catalog["calculus"],
                    catalog["physics"],
                    catalog["chemistry"],
                    catalog["programming"],
                ],
            )

        assert exc_info.value.reason == "MAX_SUBJECTS_REACHED"
        assert len(exc_info.value.violations) == 1

    @pytest.mark.asyncio
    async def test_rejects_credit_overflow(self, db_session, catalog):
        student_id = (await _student(db_session, max_credits=6)).id

        with pytest.raises(SelectionRejectedError) as exc_info:
            await EnrollmentService(db_session).save_selection(
                student_id,
                [catalog["calculus"], catalog["physics"], catalog["chemistry"]],
            )

        assert exc_info.value.reason == "CREDIT_LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_rejects_unknown_subject(self, db_session, catalog, student_id):
        with pytest.raises(SelectionRejectedError) as exc_info:
            await EnrollmentService(db_session).save_selection(student_id, ["missing"])

        assert exc_info.value.reason == "UNKNOWN_SUBJECT"

    @pytest.mark.asyncio
    async def test_full_subject_rejected_but_held_seat_kept(self, db_session):
        professor_id = (await _professor(db_session)).id
        seminar_id = (
            await _subject(db_session, "Seminar", professor_id, capacity=1)
        ).id
        ann_id = (await _student(db_session, "Ann Gardner")).id
        charles_id = (await _student(db_session, "Charles Lopez")).id
        service = EnrollmentService(db_session)
        await service.save_selection(ann_id, [seminar_id])

        with pytest.raises(SelectionRejectedError) as exc_info:
            await service.save_selection(charles_id, [seminar_id])
        assert exc_info.value.reason == "SUBJECT_FULL"

        # Closing the subject does not evict a seat already held
        await SubjectService(db_session).update(seminar_id, is_active=False)
        outcome = await service.save_selection(ann_id, [seminar_id])
        assert outcome.changed is False

    @pytest.mark.asyncio
    async def test_unenroll_never_goes_below_zero(
        self, db_session, catalog, student_id
    ):
        service = EnrollmentService(db_session)
        await service.enroll(student_id, catalog["physics"])

        await service.unenroll(student_id, catalog["physics"])
        await service.unenroll(student_id, catalog["physics"])

        counts = await SubjectService(db_session).enrolled_counts([catalog["physics"]])
        assert counts.get(catalog["physics"], 0) == 0

    @pytest.mark.asyncio
    async def test_custom_limits(self, db_session, catalog, student_id):
        service = EnrollmentService(db_session, EnrollmentLimits(max_subjects=1))

        with pytest.raises(SelectionRejectedError):
            await service.save_selection(
                student_id, [catalog["physics"], catalog["chemistry"]]
            )

    @pytest.mark.asyncio
    async def test_missing_student(self, db_session, catalog):
        with pytest.raises(RecordNotFoundError):
            await EnrollmentService(db_session).save_selection(
                "missing", [catalog["physics"]]
            )
