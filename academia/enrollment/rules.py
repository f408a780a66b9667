"""Enrollment rules.

Pure functions deciding whether a subject may be added to or removed from a
student's working selection. Nothing here touches the database or keeps
state: every input arrives as an argument, so the same functions back the
selection screen (instant feedback) and the transactional save (final
check).

Rules for adding a subject, in the order they are applied:

1. ALREADY_SELECTED      accepted, selection unchanged
2. MAX_SUBJECTS_REACHED  selection already holds ``max_subjects`` ids
3. DUPLICATE_PROFESSOR   another selected subject has the same professor
4. CREDIT_LIMIT_EXCEEDED selected credits + candidate credits > max credits
5. SUBJECT_INACTIVE      subject closed for enrollment, unless already held
6. SUBJECT_FULL          no free seat, unless the student already holds one
"""

import enum
from dataclasses import dataclass
from typing import (
    AbstractSet,
    Collection,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
)

from academia.config import Settings
from academia.schemas.professor import ProfessorDocument
from academia.schemas.student import StudentDocument
from academia.schemas.subject import SubjectDocument


class Reason(str, enum.Enum):
    """Reason code attached to every decision."""

    ADDED = "ADDED"
    REMOVED = "REMOVED"
    ALREADY_SELECTED = "ALREADY_SELECTED"
    NOT_SELECTED = "NOT_SELECTED"
    MAX_SUBJECTS_REACHED = "MAX_SUBJECTS_REACHED"
    DUPLICATE_PROFESSOR = "DUPLICATE_PROFESSOR"
    CREDIT_LIMIT_EXCEEDED = "CREDIT_LIMIT_EXCEEDED"
    SUBJECT_INACTIVE = "SUBJECT_INACTIVE"
    SUBJECT_FULL = "SUBJECT_FULL"
    UNKNOWN_SUBJECT = "UNKNOWN_SUBJECT"
    EMPTY_SELECTION = "EMPTY_SELECTION"


@dataclass(frozen=True)
class EnrollmentLimits:
    """Per-semester caps.

    Attributes:
        max_subjects: Maximum number of subjects in one selection.
        max_credits: Credit cap used when the student carries none.
        credits_per_subject: Credits assumed for subjects not loaded yet.
    """

    max_subjects: int = 3
    max_credits: int = 9
    credits_per_subject: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnrollmentLimits":
        return cls(
            max_subjects=settings.MAX_SUBJECTS_PER_SEMESTER,
            max_credits=settings.MAX_CREDITS_PER_SEMESTER,
            credits_per_subject=settings.CREDITS_PER_SUBJECT,
        )


DEFAULT_LIMITS = EnrollmentLimits()


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating one add or remove.

    Attributes:
        accepted: Whether the action is allowed.
        reason: Rule that decided the outcome.
        selection: Selection after the action (unchanged when rejected).
        message: Short user-facing sentence.
    """

    accepted: bool
    reason: Reason
    selection: FrozenSet[str]
    message: str

    @property
    def changed(self) -> bool:
        return self.reason in (Reason.ADDED, Reason.REMOVED)


def credit_cap(
    student: Optional[StudentDocument], limits: EnrollmentLimits = DEFAULT_LIMITS
) -> int:
    """Credit cap for ``student``; the limits apply when there is no student."""
    if student is None:
        return limits.max_credits
    return student.max_credits


def total_credits(
    selection: Iterable[str],
    subjects: Mapping[str, SubjectDocument],
    limits: EnrollmentLimits = DEFAULT_LIMITS,
) -> int:
    """Sum the credits of the selected subjects."""
    total = 0
    for subject_id in selection:
        subject = subjects.get(subject_id)
        total += subject.credits if subject else limits.credits_per_subject
    return total


def remaining_credits(
    student: Optional[StudentDocument],
    selection: Iterable[str],
    subjects: Mapping[str, SubjectDocument],
    limits: EnrollmentLimits = DEFAULT_LIMITS,
) -> int:
    return credit_cap(student, limits) - total_credits(selection, subjects, limits)


def has_unsaved_changes(saved: Iterable[str], selection: Iterable[str]) -> bool:
    """Compare two selections ignoring order and repeats."""
    return set(saved) != set(selection)


def _professor_label(
    professor_id: str, professors: Optional[Mapping[str, ProfessorDocument]]
) -> str:
    professor = professors.get(professor_id) if professors else None
    return professor.name if professor else "this professor"


def evaluate_add(
    student: Optional[StudentDocument],
    candidate: SubjectDocument,
    selection: AbstractSet[str],
    subjects: Mapping[str, SubjectDocument],
    limits: EnrollmentLimits = DEFAULT_LIMITS,
    professors: Optional[Mapping[str, ProfessorDocument]] = None,
) -> Decision:
    """Decide whether ``candidate`` may join ``selection``.

    Args:
        student: Student owning the selection; their saved enrollment
            counts as already-held seats for the capacity check.
        candidate: Subject being added.
        selection: Current working selection.
        subjects: All known subjects by id.
        limits: Caps to apply.
        professors: Optional professors by id, used only to name them
            in messages.

    Returns:
        The decision; ``selection`` is unchanged unless accepted.
    """
    current = frozenset(selection)

    if candidate.id in current:
        return Decision(
            True,
            Reason.ALREADY_SELECTED,
            current,
            f"{candidate.name} is already in your selection.",
        )

    if len(current) >= limits.max_subjects:
        return Decision(
            False,
            Reason.MAX_SUBJECTS_REACHED,
            current,
            f"You can select at most {limits.max_subjects} subjects per semester.",
        )

    for subject_id in current:
        selected = subjects.get(subject_id)
        if selected is not None and selected.professor_id == candidate.professor_id:
            label = _professor_label(candidate.professor_id, professors)
            return Decision(
                False,
                Reason.DUPLICATE_PROFESSOR,
                current,
                f"You already have {selected.name} with {label}; "
                "two subjects cannot share a professor.",
            )

    cap = credit_cap(student, limits)
    if total_credits(current, subjects, limits) + candidate.credits > cap:
        return Decision(
            False,
            Reason.CREDIT_LIMIT_EXCEEDED,
            current,
            f"You cannot exceed {cap} credits per semester.",
        )

    # A seat the student already holds stays theirs even if the subject closed
    # or filled up since.
    holds_seat = student is not None and candidate.id in student.subjects
    if not holds_seat and not candidate.is_active:
        return Decision(
            False,
            Reason.SUBJECT_INACTIVE,
            current,
            f"{candidate.name} is not open for enrollment.",
        )

    if not holds_seat and candidate.enrolled >= candidate.capacity:
        return Decision(
            False,
            Reason.SUBJECT_FULL,
            current,
            f"{candidate.name} is full ({candidate.enrolled}/{candidate.capacity}).",
        )

    return Decision(
        True,
        Reason.ADDED,
        current | {candidate.id},
        f"{candidate.name} was added to your selection.",
    )


def evaluate_remove(
    selection: AbstractSet[str],
    subject_id: str,
    subjects: Optional[Mapping[str, SubjectDocument]] = None,
) -> Decision:
    """Remove ``subject_id``; always accepted."""
    current = frozenset(selection)
    subject = subjects.get(subject_id) if subjects else None
    label = subject.name if subject else "The subject"

    if subject_id not in current:
        return Decision(
            True,
            Reason.NOT_SELECTED,
            current,
            f"{label} is not in your selection.",
        )
    return Decision(
        True,
        Reason.REMOVED,
        current - {subject_id},
        f"{label} was removed from your selection.",
    )


def toggle(
    student: Optional[StudentDocument],
    subject_id: str,
    selection: AbstractSet[str],
    subjects: Mapping[str, SubjectDocument],
    limits: EnrollmentLimits = DEFAULT_LIMITS,
    professors: Optional[Mapping[str, ProfessorDocument]] = None,
) -> Decision:
    """Remove ``subject_id`` when selected, otherwise try to add it."""
    if subject_id in selection:
        return evaluate_remove(selection, subject_id, subjects)

    candidate = subjects.get(subject_id)
    if candidate is None:
        return Decision(
            False,
            Reason.UNKNOWN_SUBJECT,
            frozenset(selection),
            f"Subject {subject_id} does not exist.",
        )
    return evaluate_add(student, candidate, selection, subjects, limits, professors)


def validate_selection(
    student: Optional[StudentDocument],
    selection: Collection[str],
    subjects: Mapping[str, SubjectDocument],
    limits: EnrollmentLimits = DEFAULT_LIMITS,
    held: AbstractSet[str] = frozenset(),
) -> List[Tuple[Reason, str]]:
    """Check a complete target selection.

    Unlike ``evaluate_add`` this reports every broken rule at once.

    Args:
        student: Student the selection belongs to.
        selection: Target selection.
        subjects: Subjects by id; must cover the selection.
        limits: Caps to apply.
        held: Subjects the student already holds a seat in.

    Returns:
        ``(reason, message)`` pairs; empty when the selection is valid.
    """
    violations: List[Tuple[Reason, str]] = []
    target = set(selection)

    unknown = sorted(subject_id for subject_id in target if subject_id not in subjects)
    for subject_id in unknown:
        violations.append(
            (Reason.UNKNOWN_SUBJECT, f"Subject {subject_id} does not exist.")
        )
    known = [subjects[subject_id] for subject_id in sorted(target - set(unknown))]

    if len(target) > limits.max_subjects:
        violations.append(
            (
                Reason.MAX_SUBJECTS_REACHED,
                f"You can select at most {limits.max_subjects} subjects per semester.",
            )
        )

    seen_professors = set()
    for subject in known:
        if subject.professor_id in seen_professors:
            violations.append(
                (
                    Reason.DUPLICATE_PROFESSOR,
                    f"{subject.name} shares a professor with another selected subject.",
                )
            )
        seen_professors.add(subject.professor_id)

    cap = credit_cap(student, limits)
    if total_credits(target, subjects, limits) > cap:
        violations.append(
            (
                Reason.CREDIT_LIMIT_EXCEEDED,
                f"You cannot exceed {cap} credits per semester.",
            )
        )

    for subject in known:
        if subject.id in held:
            continue
        if not subject.is_active:
            violations.append(
                (
                    Reason.SUBJECT_INACTIVE,
                    f"{subject.name} is not open for enrollment.",
                )
            )
        elif subject.enrolled >= subject.capacity:
            violations.append(
                (
                    Reason.SUBJECT_FULL,
                    f"{subject.name} is full ({subject.enrolled}/{subject.capacity}).",
                )
            )

    return violations
