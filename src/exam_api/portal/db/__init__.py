"""Portal persistence: connection pool and repositories."""

from exam_api.portal.db.pool import DomainDBPool
from exam_api.portal.db.repository_department import DepartmentRepository
from exam_api.portal.db.repository_notification import NotificationRepository
from exam_api.portal.db.repository_profile import ProfileRepository
from exam_api.portal.db.repository_request import RequestRepository
from exam_api.portal.db.repository_response import ResponseRepository

__all__ = [
    "DomainDBPool",
    "DepartmentRepository",
    "NotificationRepository",
    "ProfileRepository",
    "RequestRepository",
    "ResponseRepository",
]
