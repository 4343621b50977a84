"""Repository for teacher payout requests."""

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models.payout import PayoutRequest, PayoutStatus
from .base_repository import BaseRepository


class PayoutRepository(BaseRepository[PayoutRequest]):
    def __init__(self, db: Session):
        super().__init__(db, PayoutRequest)

    def count_pending_for_teacher(self, teacher_id: str) -> int:
        return self.count(teacher_id=teacher_id, status=PayoutStatus.PENDING.value)

    def list_requests(
        self,
        *,
        teacher_id: Optional[str] = None,
        status: Optional[PayoutStatus] = None,
        page: int = 1,
        per_page: int = 15,
    ) -> Tuple[List[PayoutRequest], int]:
        query = self.db.query(PayoutRequest)
        if teacher_id:
            query = query.filter(PayoutRequest.teacher_id == teacher_id)
        if status:
            query = query.filter(PayoutRequest.status == PayoutStatus(status).value)
        query = query.order_by(PayoutRequest.request_date.desc(), PayoutRequest.id.desc())
        return self._paginate(query, page, per_page)
