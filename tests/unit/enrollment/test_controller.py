"""Tests for the selection screen controller, driven against a real gateway."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from academia.enrollment.controller import (
    SCREEN_TRANSITIONS,
    ActionState,
    ScreenState,
    SelectionController,
    SingleFlightAction,
)
from academia.enrollment.rules import Reason
from academia.exceptions import DatabaseConnectionError, ValidationError
from academia.store import EntityKind, EntityStore


@pytest.fixture
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture
def controller(gateway, store) -> SelectionController:
    controller = SelectionController(gateway, store)
    yield controller
    controller.close()


@pytest.fixture
async def catalog(make_professor, make_subject):
    """Three subjects with distinct professors plus one sharing a professor."""
    shared = await make_professor(name="Dr. Carl Rhodes", max_subjects=3)
    calculus = await make_subject(name="Calculus I", professor_id=shared.id)
    algebra = await make_subject(name="Linear Algebra", professor_id=shared.id)
    physics = await make_subject(name="General Physics")
    chemistry = await make_subject(name="Organic Chemistry")
    history = await make_subject(name="Art History")
    return {
        "calculus": calculus,
        "algebra": algebra,
        "physics": physics,
        "chemistry": chemistry,
        "history": history,
    }


def test_every_state_has_transitions():
    assert set(SCREEN_TRANSITIONS) == set(ScreenState)
    assert ScreenState.SAVING in SCREEN_TRANSITIONS[ScreenState.READY]
    assert ScreenState.SAVING not in SCREEN_TRANSITIONS[ScreenState.LOADING]


class TestSingleFlightAction:
    """At most one operation runs at a time."""

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_one_operation(self):
        action = SingleFlightAction("save")
        calls = 0
        release = asyncio.Event()

        async def operation():
            nonlocal calls
            calls += 1
            await release.wait()
            return "saved"

        first = asyncio.ensure_future(action.run(operation))
        second = asyncio.ensure_future(action.run(operation))
        await asyncio.sleep(0)
        assert action.in_flight is True

        release.set()
        results = await asyncio.gather(first, second)

        assert results == ["saved", "saved"]
        assert calls == 1
        assert action.state is ActionState.DONE
        assert action.result == "saved"

    @pytest.mark.asyncio
    async def test_failure_reaches_every_caller(self):
        action = SingleFlightAction("save")

        async def operation():
            await asyncio.sleep(0)
            raise DatabaseConnectionError("down")

        results = await asyncio.gather(
            action.run(operation), action.run(operation), return_exceptions=True
        )

        assert all(isinstance(result, DatabaseConnectionError) for result in results)
        assert action.state is ActionState.FAILED

    @pytest.mark.asyncio
    async def test_next_run_starts_after_completion(self):
        action = SingleFlightAction("save")
        operation = AsyncMock(side_effect=["first", "second"])

        assert await action.run(operation) == "first"
        assert await action.run(operation) == "second"
        assert operation.await_count == 2


class TestOpen:
    """Entering the selection screen."""

    @pytest.mark.asyncio
    async def test_open_loads_collections(self, controller, store, catalog, make_student):
        student = await make_student()

        assert await controller.open(student.id) is True

        assert controller.state is ScreenState.READY
        assert store.current_user.id == student.id
        assert len(store.all(EntityKind.SUBJECTS)) == 5
        assert store.state(EntityKind.PROFESSORS).loaded is True
        assert controller.selection == frozenset()
        assert controller.remaining_credits == 9

    @pytest.mark.asyncio
    async def test_open_adopts_saved_enrollment(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await gateway.save_selection(student.id, [catalog["physics"].id])

        await controller.open(student.id)

        assert controller.saved == {catalog["physics"].id}
        assert controller.selection == controller.saved
        assert controller.total_credits == 3
        assert controller.has_unsaved_changes is False

    @pytest.mark.asyncio
    async def test_open_missing_student_fails(self, controller, catalog):
        assert await controller.open("missing") is False

        assert controller.state is ScreenState.ERROR
        assert controller.notifications[-1].level == "error"
        assert "missing" in controller.notifications[-1].message

    @pytest.mark.asyncio
    async def test_open_skips_populated_collections(
        self, gateway, controller, store, catalog, make_student
    ):
        student = await make_student()
        store.finish_load(EntityKind.PROFESSORS, [])
        gateway.professors.get_all = AsyncMock(wraps=gateway.professors.get_all)

        await controller.open(student.id)

        # Only the subscription's initial delivery reads professors
        assert gateway.professors.get_all.await_count == 1


class TestToggle:
    """Local selection edits."""

    @pytest.mark.asyncio
    async def test_toggle_before_open_is_rejected(self, controller):
        with pytest.raises(ValidationError):
            controller.toggle("anything")

    @pytest.mark.asyncio
    async def test_toggle_adds_and_notifies(self, controller, catalog, make_student):
        student = await make_student()
        await controller.open(student.id)

        decision = controller.toggle(catalog["physics"].id)

        assert decision.reason is Reason.ADDED
        assert controller.selection == {catalog["physics"].id}
        assert controller.has_unsaved_changes is True
        assert controller.notifications[-1].level == "success"

    @pytest.mark.asyncio
    async def test_rejected_toggle_keeps_selection(
        self, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["calculus"].id)

        decision = controller.toggle(catalog["algebra"].id)

        assert decision.reason is Reason.DUPLICATE_PROFESSOR
        assert controller.selection == {catalog["calculus"].id}
        assert controller.state is ScreenState.READY
        assert controller.notifications[-1].level == "warning"
        assert "Dr. Carl Rhodes" in controller.notifications[-1].message

    @pytest.mark.asyncio
    async def test_toggle_never_calls_gateway(self, gateway, controller, catalog, make_student):
        student = await make_student()
        await controller.open(student.id)
        gateway.save_selection = AsyncMock()

        controller.toggle(catalog["physics"].id)
        controller.toggle(catalog["physics"].id)

        gateway.save_selection.assert_not_awaited()
        assert controller.selection == frozenset()


class TestSave:
    """Persisting the working selection."""

    @pytest.mark.asyncio
    async def test_save_persists_selection(
        self, gateway, controller, store, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["physics"].id)
        controller.toggle(catalog["chemistry"].id)

        result = await controller.save()

        assert result is not None
        assert sorted(result.added) == sorted(
            [catalog["physics"].id, catalog["chemistry"].id]
        )
        assert controller.state is ScreenState.READY
        assert controller.has_unsaved_changes is False
        assert controller.notifications[-1].level == "success"
        assert set(store.current_user.subjects) == controller.saved
        assert store.get(EntityKind.SUBJECTS, catalog["physics"].id).enrolled == 1

        persisted = await gateway.students.get_by_id(student.id)
        assert set(persisted.subjects) == controller.saved
        assert persisted.credits == 6

    @pytest.mark.asyncio
    async def test_save_empty_selection_warns(self, gateway, controller, catalog, make_student):
        student = await make_student()
        await controller.open(student.id)
        gateway.save_selection = AsyncMock()

        assert await controller.save() is None

        gateway.save_selection.assert_not_awaited()
        assert controller.state is ScreenState.READY
        assert controller.notifications[-1].title == "Nothing selected"

    @pytest.mark.asyncio
    async def test_server_rejection_returns_to_ready(
        self, gateway, controller, catalog, make_subject, make_student
    ):
        """Test: A seat taken by someone else after the toggle fails the save."""
        seminar = await make_subject(name="Seminar", capacity=1)
        student = await make_student()
        rival = await make_student()
        await controller.open(student.id)
        controller.toggle(seminar.id)

        await gateway.save_selection(rival.id, [seminar.id])
        result = await controller.save()

        assert result is None
        assert controller.state is ScreenState.READY
        assert controller.notifications[-1].level == "warning"
        assert "full" in controller.notifications[-1].message
        assert controller.selection == {seminar.id}
        assert controller.saved == frozenset()

    @pytest.mark.asyncio
    async def test_remote_failure_moves_to_error(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["physics"].id)
        gateway.save_selection = AsyncMock(side_effect=DatabaseConnectionError("down"))

        assert await controller.save() is None

        assert controller.state is ScreenState.ERROR
        assert controller.notifications[-1].level == "error"
        assert controller.selection == {catalog["physics"].id}

        # Editing again recovers the screen
        controller.toggle(catalog["chemistry"].id)
        assert controller.state is ScreenState.READY

    @pytest.mark.asyncio
    async def test_concurrent_saves_run_once(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["physics"].id)

        calls = 0
        original = gateway.save_selection

        async def counting_save(student_id, selection):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return await original(student_id, selection)

        gateway.save_selection = counting_save

        first, second = await asyncio.gather(controller.save(), controller.save())

        assert calls == 1
        assert first is second
        assert controller.state is ScreenState.READY

    @pytest.mark.asyncio
    async def test_toggle_during_save_is_rejected(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["physics"].id)
        release = asyncio.Event()
        original = gateway.save_selection

        async def held_save(student_id, selection):
            await release.wait()
            return await original(student_id, selection)

        gateway.save_selection = held_save
        saving = asyncio.ensure_future(controller.save())
        await asyncio.sleep(0)

        assert controller.state is ScreenState.SAVING
        with pytest.raises(ValidationError):
            controller.toggle(catalog["chemistry"].id)

        release.set()
        await saving
        assert controller.state is ScreenState.READY


class TestRealtime:
    """Snapshots pushed while the screen is open."""

    @pytest.mark.asyncio
    async def test_profile_edit_reaches_current_user(
        self, gateway, controller, store, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)

        await gateway.students.update(student.id, name="Ann Marie Gardner")

        assert store.current_user.name == "Ann Marie Gardner"

    @pytest.mark.asyncio
    async def test_remote_enrollment_keeps_local_edits(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.toggle(catalog["chemistry"].id)

        # Saved elsewhere, e.g. from another tab
        await gateway.save_selection(student.id, [catalog["physics"].id])

        assert controller.saved == {catalog["physics"].id}
        assert controller.selection == {catalog["chemistry"].id}

    @pytest.mark.asyncio
    async def test_remote_enrollment_adopted_without_local_edits(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)

        await gateway.save_selection(student.id, [catalog["physics"].id])

        assert controller.selection == {catalog["physics"].id}
        assert controller.has_unsaved_changes is False

    @pytest.mark.asyncio
    async def test_subject_changes_update_store(
        self, gateway, controller, store, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)

        await gateway.subjects.update(catalog["history"].id, capacity=5)

        assert store.get(EntityKind.SUBJECTS, catalog["history"].id).capacity == 5

    @pytest.mark.asyncio
    async def test_deleted_student_notifies(
        self, gateway, controller, store, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)

        await gateway.students.delete(student.id)

        assert store.current_user is None
        assert controller.notifications[-1].title == "Account removed"

    @pytest.mark.asyncio
    async def test_close_stops_callbacks(
        self, gateway, feed, controller, store, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)

        controller.close()
        await gateway.students.update(student.id, name="Changed")

        assert controller.state is ScreenState.IDLE
        assert store.current_user.name != "Changed"
        for collection in ("students", "subjects", "professors"):
            assert feed.listener_count(collection) == 0


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_reloads_everything(
        self, gateway, controller, store, catalog, make_subject, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        controller.close_feeds()
        extra = await make_subject(name="Statistics")

        assert await controller.refresh() is True

        assert controller.state is ScreenState.READY
        assert store.get(EntityKind.SUBJECTS, extra.id) is not None

    @pytest.mark.asyncio
    async def test_refresh_failure_moves_to_error(
        self, gateway, controller, catalog, make_student
    ):
        student = await make_student()
        await controller.open(student.id)
        gateway.subjects.get_all = AsyncMock(side_effect=DatabaseConnectionError("down"))

        assert await controller.refresh() is False

        assert controller.state is ScreenState.ERROR
        assert controller.notifications[-1].title == "Could not refresh"
