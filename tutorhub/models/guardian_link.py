"""Guardian to student ownership links."""

from sqlalchemy import Boolean, Column, DateTime, String, UniqueConstraint
from sqlalchemy.sql import func
import ulid

from ..database import Base


class GuardianStudentLink(Base):
    """A guardian may fund and manage only the students linked here."""

    __tablename__ = "guardian_student_links"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    guardian_id = Column(String(26), nullable=False, index=True)
    student_id = Column(String(26), nullable=False, index=True)
    relationship_label = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("guardian_id", "student_id", name="uq_guardian_student_link"),
    )

    def __repr__(self) -> str:
        return f"<GuardianStudentLink guardian={self.guardian_id} student={self.student_id}>"
