"""
Profile Repository

Repository for profile reads and first-login setup.
"""

from typing import Optional
from uuid import UUID

from exam_api.portal.db.repository_base import BaseRepository
from exam_api.portal.models import Profile

PROFILE_COLUMNS = """
    id, email, full_name, role, department_id, student_id, phone,
    avatar_url, is_profile_complete, created_at
"""


class ProfileRepository(BaseRepository):
    """Profile repository."""

    def __init__(self, pool):
        super().__init__(pool, "profiles")

    async def get(self, profile_id: UUID) -> Optional[Profile]:
        """Get a profile by identity-provider subject."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {PROFILE_COLUMNS} FROM exam_portal.profiles WHERE id = $1",
                profile_id,
            )
        return Profile.model_validate(dict(row)) if row else None

    async def upsert_student_profile(
        self,
        profile_id: UUID,
        email: str,
        full_name: str,
        department_id: UUID,
        student_id: Optional[str],
        phone: Optional[str],
        avatar_url: Optional[str],
    ) -> Profile:
        """
        Create or complete a profile.

        New profiles always start as students. An existing row keeps its role,
        and for admin roles its department, which are provisioned out-of-band.
        The avatar is kept when none is given.
        """
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO exam_portal.profiles
                    (id, email, full_name, role, department_id, student_id, phone,
                     avatar_url, is_profile_complete)
                VALUES ($1, $2, $3, 'student', $4, $5, $6, $7, true)
                ON CONFLICT (id) DO UPDATE SET
                    email = EXCLUDED.email,
                    full_name = EXCLUDED.full_name,
                    department_id = CASE
                        WHEN exam_portal.profiles.role = 'student' THEN EXCLUDED.department_id
                        ELSE exam_portal.profiles.department_id
                    END,
                    student_id = EXCLUDED.student_id,
                    phone = EXCLUDED.phone,
                    avatar_url = COALESCE(EXCLUDED.avatar_url, exam_portal.profiles.avatar_url),
                    is_profile_complete = true,
                    updated_at = NOW()
                RETURNING {PROFILE_COLUMNS}
                """,
                profile_id,
                email,
                full_name,
                department_id,
                student_id,
                phone,
                avatar_url,
            )
        return Profile.model_validate(dict(row))
