"""Professors API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status

from academia.exceptions import RecordNotFoundError
from academia.gateway import RemoteGateway
from academia.schemas.professor import (
    DistributionReport,
    ProfessorCreate,
    ProfessorDocument,
    ProfessorUpdate,
)
from academia.utils.dependencies import get_gateway

router = APIRouter(
    prefix="/professors",
    tags=["Professors"],
)


@router.get("")
async def list_professors(
    search: str = Query(default="", description="Search term for name or email"),
    subject_id: Optional[str] = Query(default=None, description="Owner of subject"),
    active: bool = Query(default=False, description="Only active professors"),
    limit: int = Query(default=50, ge=1, le=200, description="Max search results"),
    gateway: RemoteGateway = Depends(get_gateway),
) -> list[ProfessorDocument]:
    if subject_id:
        return await gateway.professors.find_by_subject(subject_id)
    if search:
        return await gateway.professors.search(search, limit)
    if active:
        return await gateway.professors.get_active()
    return await gateway.professors.get_all()


@router.get("/distribution")
async def get_distribution(
    gateway: RemoteGateway = Depends(get_gateway),
) -> DistributionReport:
    """Check teaching loads and subject ownership across all professors."""
    return await gateway.professors.validate_distribution()


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_professor(
    data: ProfessorCreate,
    gateway: RemoteGateway = Depends(get_gateway),
) -> ProfessorDocument:
    return await gateway.professors.create(**data.model_dump())


@router.get("/{professor_id}")
async def get_professor(
    professor_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> ProfessorDocument:
    professor = await gateway.professors.get_by_id(professor_id)
    if professor is None:
        raise RecordNotFoundError("Professor", professor_id)
    return professor


@router.patch("/{professor_id}")
async def update_professor(
    professor_id: str,
    data: ProfessorUpdate,
    gateway: RemoteGateway = Depends(get_gateway),
) -> ProfessorDocument:
    return await gateway.professors.update(
        professor_id, **data.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/{professor_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_professor(
    professor_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> None:
    """Delete a professor who no longer owns any subject.

    Raises:
        ValidationError: If the professor still owns subjects.
    """
    await gateway.professors.delete(professor_id)


@router.put("/{professor_id}/subjects/{subject_id}")
async def assign_subject(
    professor_id: str,
    subject_id: str,
    gateway: RemoteGateway = Depends(get_gateway),
) -> ProfessorDocument:
    """Make the professor the owner of the subject.

    Raises:
        ValidationError: If the professor already owns the subject.
        TeachingLoadExceededError: If the professor's load is full.
    """
    return await gateway.professors.assign_subject(professor_id, subject_id)
