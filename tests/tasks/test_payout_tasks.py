"""Tests for the scheduled payout Celery task."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

from tutorhub.models.payout import PayoutRequest, PayoutStatus
from tutorhub.models.wallet import WalletType
from tutorhub.services.config_service import ConfigService
from tutorhub.tasks.payout_tasks import process_auto_payouts


def _session_cm(mock_get_session, db):
    mock_get_session.return_value.__enter__ = MagicMock(return_value=db)
    mock_get_session.return_value.__exit__ = MagicMock(return_value=False)


class TestProcessAutoPayouts:
    @patch("tutorhub.tasks.payout_tasks.get_db_session")
    def test_opens_payout_above_threshold(self, mock_get_session, db, funded_wallet):
        _session_cm(mock_get_session, db)
        ConfigService(db).set("auto_payout_threshold", "6000")
        rich = funded_wallet(WalletType.TEACHER, "7000")
        funded_wallet(WalletType.TEACHER, "5500")

        result = process_auto_payouts()

        assert result["created"] == 1
        assert result["failed"] == 0
        payout = db.get(PayoutRequest, result["payout_ids"][0])
        assert payout.teacher_id == rich.user_id
        assert payout.status == PayoutStatus.PENDING.value
        assert Decimal(payout.amount) == Decimal("7000")

    @patch("tutorhub.tasks.payout_tasks.get_db_session")
    def test_rerun_skips_open_requests(self, mock_get_session, db, funded_wallet):
        _session_cm(mock_get_session, db)
        ConfigService(db).set("auto_payout_threshold", "6000")
        funded_wallet(WalletType.TEACHER, "7000")

        process_auto_payouts()

        assert process_auto_payouts()["created"] == 0

    @patch("tutorhub.tasks.payout_tasks.get_db_session")
    def test_disabled_threshold(self, mock_get_session, db, funded_wallet):
        _session_cm(mock_get_session, db)
        ConfigService(db).set("auto_payout_threshold", "0")
        funded_wallet(WalletType.TEACHER, "70000")

        assert process_auto_payouts() == {"created": 0, "failed": 0, "payout_ids": []}
