"""
Profile Service

Identity allow-list, first-login profile setup and the department catalogue.
"""

from typing import Iterable
from typing import List
from typing import Optional
from uuid import UUID

from loguru import logger

from exam_api.exceptions import NotFound
from exam_api.exceptions import Unauthorized
from exam_api.exceptions import ValidationError
from exam_api.portal.db.repository_department import DepartmentRepository
from exam_api.portal.db.repository_profile import ProfileRepository
from exam_api.portal.enums import StorageArea
from exam_api.portal.models import Actor
from exam_api.portal.models import Department
from exam_api.portal.models import FileUpload
from exam_api.portal.models import Identity
from exam_api.portal.models import Profile
from exam_api.portal.storage.attachment_store import AttachmentStore
from exam_api.portal.storage.attachment_store import validate_attachment_name
from exam_api.portal.validation import require_text


def is_allowed_email(email: str, allowed_domains: Iterable[str]) -> bool:
    """Case-insensitive suffix match of `email` against the allow-listed domains."""
    email = (email or "").strip().lower()
    return any(email.endswith(domain.lower()) for domain in allowed_domains)


class ProfileService:
    """Profiles and departments as seen by an authenticated identity."""

    def __init__(
        self,
        profiles: ProfileRepository,
        departments: DepartmentRepository,
        store: AttachmentStore,
        allowed_email_domains: List[str],
    ):
        self.profiles = profiles
        self.departments = departments
        self.store = store
        self.allowed_email_domains = allowed_email_domains

    def check_identity(self, identity: Identity) -> None:
        """Raise Unauthorized when the identity's email domain is not allow-listed."""
        if not is_allowed_email(identity.email, self.allowed_email_domains):
            logger.warning("Identity rejected by email domain allow-list", email=identity.email)
            raise Unauthorized(f"Please use your institutional email ({', '.join(self.allowed_email_domains)}).")

    async def list_departments(self) -> List[Department]:
        return await self.departments.list_active()

    async def get_profile(self, identity: Identity) -> Profile:
        self.check_identity(identity)
        profile = await self.profiles.get(identity.subject)
        if profile is None:
            raise NotFound("Profile not found. Please complete profile setup.")
        return profile

    async def get_actor(self, identity: Identity) -> Actor:
        """Build the explicit caller context for core operations."""
        return Actor.from_profile(await self.get_profile(identity))

    async def setup_profile(
        self,
        identity: Identity,
        full_name: str,
        department_id: UUID,
        student_id: Optional[str] = None,
        phone: Optional[str] = None,
        avatar: Optional[FileUpload] = None,
    ) -> Profile:
        """
        Create or complete the caller's profile.

        New profiles are students; the role of an existing profile is kept.

        Raises:
            Unauthorized: email domain not allow-listed
            ValidationError: empty name or inactive department
            UnsupportedFileType: avatar extension outside the allow-list
            StorageFailure: avatar upload failed (profile unchanged)
        """
        self.check_identity(identity)
        full_name = require_text(full_name, "Full name")
        if avatar is not None:
            validate_attachment_name(avatar.filename)

        department = await self.departments.get(department_id)
        if department is None or not department.is_active:
            raise ValidationError("Please choose an active department.")

        avatar_url = None
        if avatar is not None:
            avatar_url = await self.store.store(avatar, identity.subject, StorageArea.AVATARS)

        profile = await self.profiles.upsert_student_profile(
            profile_id=identity.subject,
            email=identity.email.strip().lower(),
            full_name=full_name,
            department_id=department_id,
            student_id=(student_id or "").strip() or None,
            phone=(phone or "").strip() or None,
            avatar_url=avatar_url,
        )
        logger.info("Profile set up", profile_id=str(profile.id), role=profile.role.value)
        return profile
