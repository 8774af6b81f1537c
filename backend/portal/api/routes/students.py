from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import ConflictError, PermissionDeniedError, ResourceNotFoundError
from portal.models.student import Student
from portal.models.user import User, UserRole
from portal.schemas.student import StudentCreate, StudentOut, StudentUpdate
from portal.services.audit import log_activity

router = APIRouter()

REQUIRED_STUDENT_FIELDS = {"name", "roll_no", "class_year"}


def _ensure_department_access(current_user: User, department: str | None) -> None:
    if current_user.effective_role == UserRole.admin:
        return
    if not current_user.department or department != current_user.department:
        raise PermissionDeniedError("HODs can only manage students within their department")


def _ensure_unique_roll_no(db: Session, roll_no: str, *, exclude_id: str | None = None) -> None:
    query = select(Student).where(Student.roll_no == roll_no)
    if exclude_id:
        query = query.where(Student.id != exclude_id)
    if db.execute(query).scalar_one_or_none() is not None:
        raise ConflictError("Roll number already exists", details={"roll_no": roll_no})


@router.get("", response_model=list[StudentOut])
def list_students(
    class_year: str | None = Query(default=None),
    division: str | None = Query(default=None),
    department: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[StudentOut]:
    query = select(Student)
    if class_year:
        query = query.where(Student.class_year == class_year)
    if division:
        query = query.where(Student.division == division.strip().upper())
    if department:
        query = query.where(Student.department == department)
    query = query.order_by(Student.class_year.asc(), Student.division.asc(), Student.roll_no.asc())
    return list(db.execute(query).scalars())


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentOut:
    student = db.get(Student, student_id)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)
    return student


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> StudentOut:
    values = payload.model_dump()
    if current_user.effective_role == UserRole.hod and values.get("department") is None:
        values["department"] = current_user.department
    _ensure_department_access(current_user, values.get("department"))
    _ensure_unique_roll_no(db, payload.roll_no)

    student = Student(**values)
    db.add(student)
    db.flush()
    log_activity(db, user=current_user, action="student.create", entity_type="student", entity_id=student.id)
    db.commit()
    db.refresh(student)
    return student


@router.put("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: str,
    payload: StudentUpdate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> StudentOut:
    student = db.get(Student, student_id)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)
    _ensure_department_access(current_user, student.department)

    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in REQUIRED_STUDENT_FIELDS
    }
    if "department" in data:
        _ensure_department_access(current_user, data["department"])
    if "roll_no" in data:
        data["roll_no"] = data["roll_no"].strip()
        _ensure_unique_roll_no(db, data["roll_no"], exclude_id=student.id)
    if data.get("division"):
        data["division"] = data["division"].strip().upper()

    for key, value in data.items():
        setattr(student, key, value)
    log_activity(
        db,
        user=current_user,
        action="student.update",
        entity_type="student",
        entity_id=student.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(student)
    return student


@router.delete("/{student_id}")
def delete_student(
    student_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> dict:
    student = db.get(Student, student_id)
    if student is None:
        raise ResourceNotFoundError("Student", student_id)
    _ensure_department_access(current_user, student.department)

    db.delete(student)
    log_activity(db, user=current_user, action="student.delete", entity_type="student", entity_id=student_id)
    db.commit()
    return {"success": True, "message": "Student deleted"}
