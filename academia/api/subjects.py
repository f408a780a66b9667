"""Subjects API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status

from academia.exceptions import RecordNotFoundError
from academia.gateway import RemoteGateway
from academia.schemas.subject import SubjectCreate, SubjectDocument, SubjectUpdate
from academia.utils.dependencies import get_gateway

router = APIRouter(
    prefix="/subjects",
    tags=["Subjects"],
)


@router.get("")
async def list_subjects(
    search: str = Query(default="", description="Search term for name or description"),
    professor_id: Optional[str] = Query(default=None, description="Owning professor"),
    active: bool = Query(default=False, description="Only subjects open for enrollment"),
    available: bool = Query(default=False, description="Only subjects with free seats"),
    limit: int = Query(default=50, ge=1, le=200, description="Max search results"),
    gateway: RemoteGateway = Depends(get_gateway),
) -> list[SubjectDocument]:
    """List subjects by name.

    Args:
        search: Search term (active subjects only).
        professor_id: Restrict to one professor; ``active`` narrows further.
        active: Only active subjects.
        available: Only active subjects that still have a free seat.
        limit: Maximum number of search results.
    """
    if available:
        return await gateway.subjects.get_available()
    if professor_id:
        return await gateway.subjects.find_by_professor(professor_id, active_only=active)
    if search:
        return await gateway.subjects.search(search, limit)
    if active:
        return await gateway.subjects.get_active()
    return await gateway.subjects.get_all()


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_subject(
    data: SubjectCreate,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SubjectDocument:
    """Create a subject owned by an existing professor.

    Raises:
        RelatedRecordNotFoundError: If the professor does not exist.
        TeachingLoadExceededError: If the professor's load is full.
    """
    return await gateway.subjects.create(**data.model_dump())


@router.get("/{subject_id}")
async def get_subject(
    subject_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SubjectDocument:
    subject = await gateway.subjects.get_by_id(subject_id)
    if subject is None:
        raise RecordNotFoundError("Subject", subject_id)
    return subject


@router.patch("/{subject_id}")
async def update_subject(
    subject_id: str,
    data: SubjectUpdate,
    gateway: RemoteGateway = Depends(get_gateway),
) -> SubjectDocument:
    """Update subject fields; ownership moves through the professors API."""
    return await gateway.subjects.update(
        subject_id, **data.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/{subject_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_subject(
    subject_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> None:
    """Delete a subject together with its enrollments."""
    await gateway.subjects.delete(subject_id)
