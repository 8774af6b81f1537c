from __future__ import annotations

from portal.core.exceptions import ConflictError, PermissionDeniedError
from portal.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from portal.models.user import User, UserRole

ALLOWED_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset({LeaveStatus.approved, LeaveStatus.rejected}),
    LeaveStatus.approved: frozenset(),
    LeaveStatus.rejected: frozenset(),
}


class LeaveTransitionError(ConflictError):
    def __init__(self, current: LeaveStatus, target: LeaveStatus):
        super().__init__(
            f"Leave request cannot move from {current.value} to {target.value}",
            details={"current_status": current.value, "requested_status": target.value},
        )
        self.current = current
        self.target = target


def is_terminal(status: LeaveStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def review_transition(current: LeaveStatus, target: LeaveStatus) -> LeaveStatus:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise LeaveTransitionError(current, target)
    return target


def can_review(reviewer: User, request: LeaveRequest, requester: User | None) -> bool:
    if reviewer.role == UserRole.admin:
        return True
    if reviewer.effective_role != UserRole.hod:
        return False
    if request.teacher_id == reviewer.id or request.is_hod_request:
        return False
    if requester is None:
        return False
    return bool(reviewer.department) and requester.department == reviewer.department


def ensure_can_review(reviewer: User, request: LeaveRequest, requester: User | None) -> None:
    if not can_review(reviewer, request, requester):
        raise PermissionDeniedError("You are not allowed to review this leave request")


# (id, display name, max days, default days)
LEAVE_TYPE_CATALOGUE: tuple[tuple[LeaveType, str, int, int], ...] = (
    (LeaveType.casual, "Casual Leave", 12, 1),
    (LeaveType.medical, "Medical Leave", 10, 10),
    (LeaveType.earned, "Earned Leave", 15, 15),
    (LeaveType.duty, "On Duty", 30, 30),
    (LeaveType.unpaid, "Loss of Pay", 365, 30),
    (LeaveType.custom, "Other (Specify)", 0, 1),
)
