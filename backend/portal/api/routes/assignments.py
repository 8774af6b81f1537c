from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db
from portal.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from portal.models.assignment import Assignment, Submission, SubmissionStatus
from portal.models.student import Student
from portal.models.user import User, UserRole
from portal.schemas.assignment import (
    AssignmentCreate,
    AssignmentDetailOut,
    AssignmentListOut,
    AssignmentOut,
    AssignmentUpdate,
    SubmissionCreate,
    SubmissionGrade,
    SubmissionOut,
)
from portal.services.audit import log_activity

router = APIRouter()

REQUIRED_ASSIGNMENT_FIELDS = {"title", "max_marks"}


def _load_own(db: Session, assignment_id: str, current_user: User) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None or assignment.teacher_id != current_user.id:
        raise ResourceNotFoundError("Assignment", assignment_id)
    return assignment


def _submission_out(submission: Submission, student: Student | None) -> SubmissionOut:
    return SubmissionOut.model_validate(submission).model_copy(
        update={
            "student_name": student.name if student else None,
            "roll_no": student.roll_no if student else None,
        }
    )


@router.get("", response_model=AssignmentListOut)
def list_assignments(
    subject: str | None = Query(default=None),
    class_year: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignmentListOut:
    query = select(Assignment).where(Assignment.teacher_id == current_user.id)
    if subject:
        query = query.where(Assignment.subject == subject)
    if class_year:
        query = query.where(Assignment.class_year == class_year)
    query = query.order_by(Assignment.created_at.desc(), Assignment.title.asc())
    return AssignmentListOut(assignments=list(db.execute(query).scalars()))


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    assignment = Assignment(teacher_id=current_user.id, **payload.model_dump())
    db.add(assignment)
    db.flush()
    log_activity(
        db,
        user=current_user,
        action="assignment.create",
        entity_type="assignment",
        entity_id=assignment.id,
        details={"subject": assignment.subject, "class_year": assignment.class_year},
    )
    db.commit()
    db.refresh(assignment)
    return assignment


@router.get("/{assignment_id}", response_model=AssignmentDetailOut)
def get_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignmentDetailOut:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None or (assignment.teacher_id != current_user.id and current_user.role != UserRole.admin):
        raise ResourceNotFoundError("Assignment", assignment_id)

    rows = db.execute(
        select(Submission, Student)
        .join(Student, Student.id == Submission.student_id, isouter=True)
        .where(Submission.assignment_id == assignment.id)
        .order_by(Student.roll_no.asc())
    ).all()
    return AssignmentDetailOut(
        assignment=assignment,
        submissions=[_submission_out(submission, student) for submission, student in rows],
    )


@router.put("/{assignment_id}", response_model=AssignmentOut)
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    assignment = _load_own(db, assignment_id, current_user)
    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in REQUIRED_ASSIGNMENT_FIELDS
    }
    for key, value in data.items():
        setattr(assignment, key, value)
    log_activity(
        db,
        user=current_user,
        action="assignment.update",
        entity_type="assignment",
        entity_id=assignment.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/{assignment_id}")
def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    assignment = _load_own(db, assignment_id, current_user)
    db.execute(delete(Submission).where(Submission.assignment_id == assignment.id))
    db.delete(assignment)
    log_activity(db, user=current_user, action="assignment.delete", entity_type="assignment", entity_id=assignment_id)
    db.commit()
    return {"success": True, "message": "Assignment deleted"}


@router.post(
    "/{assignment_id}/submissions",
    response_model=SubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
def record_submission(
    assignment_id: str,
    payload: SubmissionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubmissionOut:
    """Record a hand-in collected by the teacher."""
    assignment = _load_own(db, assignment_id, current_user)
    student = db.get(Student, payload.student_id)
    if student is None:
        raise ResourceNotFoundError("Student", payload.student_id)
    duplicate = db.execute(
        select(Submission).where(Submission.assignment_id == assignment.id, Submission.student_id == student.id)
    ).scalar_one_or_none()
    if duplicate is not None:
        raise ConflictError(
            "Student has already submitted this assignment",
            details={"submission_id": duplicate.id},
        )

    submission = Submission(
        assignment_id=assignment.id,
        student_id=student.id,
        notes=payload.notes,
        status=SubmissionStatus.pending,
    )
    db.add(submission)
    db.flush()
    log_activity(
        db,
        user=current_user,
        action="assignment.submission.record",
        entity_type="submission",
        entity_id=submission.id,
        details={"assignment_id": assignment.id, "student_id": student.id},
    )
    db.commit()
    db.refresh(submission)
    return _submission_out(submission, student)


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionOut)
def grade_submission(
    submission_id: str,
    payload: SubmissionGrade,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubmissionOut:
    submission = db.get(Submission, submission_id)
    assignment = db.get(Assignment, submission.assignment_id) if submission is not None else None
    if submission is None or assignment is None or assignment.teacher_id != current_user.id:
        raise ResourceNotFoundError("Submission", submission_id)
    if payload.marks > assignment.max_marks:
        raise ValidationFailedError(
            f"Marks cannot exceed {assignment.max_marks}",
            details={"marks": payload.marks, "max_marks": assignment.max_marks},
        )

    submission.marks = payload.marks
    submission.feedback = payload.feedback
    submission.status = SubmissionStatus.graded
    log_activity(
        db,
        user=current_user,
        action="assignment.submission.grade",
        entity_type="submission",
        entity_id=submission.id,
        details={"assignment_id": assignment.id, "marks": payload.marks},
    )
    db.commit()
    db.refresh(submission)
    return _submission_out(submission, db.get(Student, submission.student_id))
