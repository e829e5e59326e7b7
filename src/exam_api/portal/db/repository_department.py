"""
Department Repository

Read-only access to department reference data.
"""

from typing import List
from typing import Optional
from uuid import UUID

from exam_api.portal.db.repository_base import BaseRepository
from exam_api.portal.models import Department


class DepartmentRepository(BaseRepository):
    """Department repository (reference data, read-only here)."""

    def __init__(self, pool):
        super().__init__(pool, "departments")

    async def list_active(self) -> List[Department]:
        """List active departments ordered by name."""
        async with self._connection() as conn:
            rows = await conn.fetch(
                """
                SELECT id, name, code, is_active
                FROM exam_portal.departments
                WHERE is_active = true
                ORDER BY name
                """
            )
        return [Department.model_validate(dict(row)) for row in rows]

    async def get(self, department_id: UUID) -> Optional[Department]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT id, name, code, is_active FROM exam_portal.departments WHERE id = $1",
                department_id,
            )
        return Department.model_validate(dict(row)) if row else None
