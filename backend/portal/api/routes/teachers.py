from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import PermissionDeniedError, ResourceNotFoundError, ValidationFailedError
from portal.models.notification import NotificationPriority, NotificationType
from portal.models.user import User, UserRole
from portal.schemas.user import DelegationOut, DelegationRequest, TeacherListOut, TeacherUpdate, UserOut
from portal.services.audit import log_activity
from portal.services.notifications import Notice, notify_users

router = APIRouter()

REQUIRED_TEACHER_FIELDS = {"name", "role", "is_active"}


@router.get("", response_model=TeacherListOut)
def list_teachers(
    department: str | None = Query(default=None),
    role: UserRole | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeacherListOut:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    else:
        query = query.where(User.role.in_([UserRole.teacher, UserRole.hod]))
    if department:
        query = query.where(User.department == department)
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    query = query.order_by(User.department.asc(), User.name.asc())
    return TeacherListOut(teachers=list(db.execute(query).scalars()))


@router.get("/{teacher_id}", response_model=UserOut)
def get_teacher(
    teacher_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserOut:
    teacher = db.get(User, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return teacher


@router.put("/{teacher_id}", response_model=UserOut)
def update_teacher(
    teacher_id: str,
    payload: TeacherUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> UserOut:
    teacher = db.get(User, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)

    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in REQUIRED_TEACHER_FIELDS
    }
    if teacher.id == current_user.id and (data.get("is_active") is False or data.get("role", UserRole.admin) != UserRole.admin):
        raise ValidationFailedError("Administrators cannot deactivate or demote their own account")
    if "name" in data:
        data["name"] = data["name"].strip()
    for key in ("department", "designation", "phone"):
        if key in data and data[key] is not None:
            data[key] = data[key].strip() or None

    for key, value in data.items():
        setattr(teacher, key, value)
    log_activity(
        db,
        user=current_user,
        action="teacher.update",
        entity_type="user",
        entity_id=teacher.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(teacher)
    return teacher


@router.post("/delegate", response_model=DelegationOut)
def delegate_authority(
    payload: DelegationRequest,
    current_user: User = Depends(require_roles(UserRole.hod)),
    db: Session = Depends(get_db),
) -> DelegationOut:
    """Hand the department's HOD rights to one teacher, or revoke them."""
    if current_user.role != UserRole.hod:
        raise PermissionDeniedError("Only the department HOD can delegate authority")

    target: User | None = None
    if payload.target_teacher_id:
        target = db.get(User, payload.target_teacher_id)
        if target is None:
            raise ResourceNotFoundError("Teacher", payload.target_teacher_id)
        if target.role != UserRole.teacher or not target.is_active or target.department != current_user.department:
            raise ValidationFailedError(
                "Authority can only be delegated to an active teacher of your department",
                details={"teacher_id": target.id},
            )

    # At most one acting HOD per department.
    acting = list(
        db.execute(
            select(User).where(User.department == current_user.department, User.is_acting_hod.is_(True))
        ).scalars()
    )
    for member in acting:
        member.is_acting_hod = False
    revoked = [member.id for member in acting if target is None or member.id != target.id]
    if target is not None:
        target.is_acting_hod = True
        notify_users(
            db,
            [target.id],
            Notice(
                title="Authority Delegated",
                message=f"{current_user.name} has delegated HOD authority for {current_user.department} to you.",
                notification_type=NotificationType.system,
                priority=NotificationPriority.high,
                action_url="/leave-management",
            ),
        )

    log_activity(
        db,
        user=current_user,
        action="teacher.delegate" if target is not None else "teacher.revoke_delegation",
        entity_type="user",
        entity_id=target.id if target is not None else None,
        details={"department": current_user.department, "revoked": revoked},
    )
    db.commit()
    if target is None:
        return DelegationOut(message="Authority revoked")
    db.refresh(target)
    return DelegationOut(message="Authority delegated", acting_hod=target)
