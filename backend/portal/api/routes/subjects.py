from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import ConflictError, ResourceNotFoundError
from portal.models.subject import Subject
from portal.models.user import User, UserRole
from portal.schemas.subject import SubjectCreate, SubjectOut, SubjectUpdate
from portal.services.audit import log_activity

router = APIRouter()

REQUIRED_SUBJECT_FIELDS = {"code", "name", "credits"}


def _ensure_unique_code(db: Session, code: str, *, exclude_id: str | None = None) -> None:
    query = select(Subject).where(Subject.code == code)
    if exclude_id:
        query = query.where(Subject.id != exclude_id)
    if db.execute(query).scalar_one_or_none() is not None:
        raise ConflictError("Subject code already exists", details={"code": code})


@router.get("", response_model=list[SubjectOut])
def list_subjects(
    department: str | None = Query(default=None),
    class_year: str | None = Query(default=None),
    semester: int | None = Query(default=None, ge=1, le=12),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SubjectOut]:
    query = select(Subject)
    if department:
        query = query.where(Subject.department == department)
    if class_year:
        query = query.where(Subject.class_year == class_year)
    if semester is not None:
        query = query.where(Subject.semester == semester)
    return list(db.execute(query.order_by(Subject.code.asc())).scalars())


@router.get("/{subject_id}", response_model=SubjectOut)
def get_subject(
    subject_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise ResourceNotFoundError("Subject", subject_id)
    return subject


@router.post("", response_model=SubjectOut, status_code=status.HTTP_201_CREATED)
def create_subject(
    payload: SubjectCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> SubjectOut:
    _ensure_unique_code(db, payload.code)
    subject = Subject(**payload.model_dump())
    db.add(subject)
    db.flush()
    log_activity(
        db,
        user=current_user,
        action="subject.create",
        entity_type="subject",
        entity_id=subject.id,
        details={"code": subject.code},
    )
    db.commit()
    db.refresh(subject)
    return subject


@router.put("/{subject_id}", response_model=SubjectOut)
def update_subject(
    subject_id: str,
    payload: SubjectUpdate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> SubjectOut:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise ResourceNotFoundError("Subject", subject_id)

    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in REQUIRED_SUBJECT_FIELDS
    }
    if "code" in data:
        _ensure_unique_code(db, data["code"], exclude_id=subject.id)

    for key, value in data.items():
        setattr(subject, key, value)
    log_activity(
        db,
        user=current_user,
        action="subject.update",
        entity_type="subject",
        entity_id=subject.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(subject)
    return subject


@router.delete("/{subject_id}")
def delete_subject(
    subject_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> dict:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise ResourceNotFoundError("Subject", subject_id)
    db.delete(subject)
    log_activity(db, user=current_user, action="subject.delete", entity_type="subject", entity_id=subject_id)
    db.commit()
    return {"success": True, "message": "Subject deleted"}
