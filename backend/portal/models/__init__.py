from portal.models.activity_log import ActivityLog  # noqa: F401
from portal.models.announcement import Announcement, AnnouncementAudience, AnnouncementPriority  # noqa: F401
from portal.models.app_setting import AppSetting  # noqa: F401
from portal.models.assignment import Assignment, Submission, SubmissionStatus  # noqa: F401
from portal.models.lecture import DayOfWeek, Lecture, LectureStatus  # noqa: F401
from portal.models.leave_request import LeaveReason, LeaveRequest, LeaveStatus, LeaveType  # noqa: F401
from portal.models.notification import Notification, NotificationPriority, NotificationType  # noqa: F401
from portal.models.student import Student  # noqa: F401
from portal.models.subject import Subject  # noqa: F401
from portal.models.substitute_assignment import (  # noqa: F401
    SubstituteAssignment,
    SubstituteAssignmentStatus,
)
from portal.models.user import User, UserRole  # noqa: F401
