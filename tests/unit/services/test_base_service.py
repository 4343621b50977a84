"""Tests for BaseService transaction handling and operation metrics."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from tutorhub.core.exceptions import ServiceException, ValidationException
from tutorhub.services.base import BaseService


class SampleService(BaseService):
    @BaseService.measure_operation("sample_operation")
    def sample_operation(self, fail: bool = False) -> str:
        if fail:
            raise ValidationException("bad input")
        return "ok"


@pytest.fixture
def service(db):
    svc = SampleService(db)
    svc.reset_metrics()
    return svc


class TestTransaction:
    def test_commits_once_for_nested_blocks(self, service, db):
        with patch.object(db, "commit") as commit:
            with service.transaction():
                with service.transaction():
                    pass
                commit.assert_not_called()
        commit.assert_called_once()

    def test_other_service_joins_outer_block(self, service, db):
        other = SampleService(db)
        with patch.object(db, "commit") as commit:
            with service.transaction():
                with other.transaction():
                    pass
        commit.assert_called_once()

    def test_database_error_becomes_service_exception(self, service, db):
        with patch.object(db, "rollback") as rollback:
            with pytest.raises(ServiceException) as exc_info:
                with service.transaction():
                    raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        rollback.assert_called_once()
        assert "Database operation failed" in exc_info.value.message

    def test_domain_error_propagates_unchanged(self, service, db):
        with patch.object(db, "rollback") as rollback:
            with pytest.raises(ValidationException):
                with service.transaction():
                    raise ValidationException("nope")
        rollback.assert_called_once()

    def test_depth_is_reset_after_failure(self, service, db):
        with pytest.raises(ValidationException):
            with service.transaction():
                raise ValidationException("nope")

        with patch.object(db, "commit") as commit:
            with service.transaction():
                pass
        commit.assert_called_once()


class TestMetrics:
    def test_records_success_and_failure(self, service):
        service.sample_operation()
        with pytest.raises(ValidationException):
            service.sample_operation(fail=True)

        metrics = service.get_metrics()["sample_operation"]
        assert metrics["count"] == 2
        assert metrics["success_count"] == 1
        assert metrics["failure_count"] == 1
        assert metrics["success_rate"] == 0.5

    def test_reset(self, service):
        service.sample_operation()
        service.reset_metrics()

        assert service.get_metrics() == {}

    def test_decorator_marks_function(self):
        assert SampleService.sample_operation._is_measured is True
        assert SampleService.sample_operation._operation_name == "sample_operation"
