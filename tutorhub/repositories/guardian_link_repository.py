"""Repository for guardian to student links."""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.guardian_link import GuardianStudentLink
from .base_repository import BaseRepository


class GuardianLinkRepository(BaseRepository[GuardianStudentLink]):
    def __init__(self, db: Session):
        super().__init__(db, GuardianStudentLink)

    def is_linked(self, guardian_id: str, student_id: str) -> bool:
        return self.exists(guardian_id=guardian_id, student_id=student_id, is_active=True)

    def get_link(self, guardian_id: str, student_id: str) -> Optional[GuardianStudentLink]:
        return self.find_one_by(guardian_id=guardian_id, student_id=student_id)

    def list_children(self, guardian_id: str) -> List[str]:
        links = self.find_by(guardian_id=guardian_id, is_active=True)
        return [link.student_id for link in links]

    def link(
        self, guardian_id: str, student_id: str, relationship_label: Optional[str] = None
    ) -> GuardianStudentLink:
        existing = self.get_link(guardian_id, student_id)
        if existing is not None:
            existing.is_active = True
            self.db.flush()
            return existing
        return self.create(
            guardian_id=guardian_id,
            student_id=student_id,
            relationship_label=relationship_label,
        )
