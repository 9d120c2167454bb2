from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import ServiceException, SlotConflict
from app.services.base import BaseService


class _DemoService(BaseService):
    @BaseService.measure_operation("ok")
    def ok(self):
        return 42

    @BaseService.measure_operation("fails")
    def fails(self):
        raise SlotConflict(["09:00 AM"])


class TestTransaction:
    def test_commits_on_success(self):
        db = Mock(spec=Session)
        service = BaseService(db)
        with service.transaction():
            pass
        db.commit.assert_called_once()
        db.rollback.assert_not_called()

    def test_sqlalchemy_error_becomes_service_exception(self):
        db = Mock(spec=Session)
        db.commit.side_effect = OperationalError("COMMIT", {}, Exception("gone"))
        service = BaseService(db)
        with pytest.raises(ServiceException):
            with service.transaction():
                pass
        db.rollback.assert_called_once()

    def test_domain_error_rolls_back_and_propagates(self):
        db = Mock(spec=Session)
        service = BaseService(db)
        with pytest.raises(SlotConflict):
            with service.transaction():
                raise SlotConflict(["09:00 AM"])
        db.rollback.assert_called_once()
        db.commit.assert_not_called()


class TestMeasureOperation:
    def setup_method(self):
        _DemoService(Mock(spec=Session)).reset_metrics()

    def test_records_success_and_failure(self):
        service = _DemoService(Mock(spec=Session))
        assert service.ok() == 42
        with pytest.raises(SlotConflict):
            service.fails()

        metrics = service.get_metrics()
        assert metrics["ok"]["count"] == 1
        assert metrics["ok"]["success_rate"] == 1.0
        assert metrics["fails"]["failure_count"] == 1

    def test_reports_to_prometheus_with_error_type(self):
        service = _DemoService(Mock(spec=Session))
        with patch("app.services.base.prometheus_metrics") as prom:
            with pytest.raises(SlotConflict):
                service.fails()
        kwargs = prom.record_service_operation.call_args.kwargs
        assert kwargs["service"] == "_DemoService"
        assert kwargs["operation"] == "fails"
        assert kwargs["status"] == "error"
        assert kwargs["error_type"] == "SlotConflict"

    def test_log_operation_passes_context(self, caplog):
        service = _DemoService(Mock(spec=Session))
        with caplog.at_level("INFO"):
            service.log_operation("reserve", schedule="c_l_2025-01-06")
        record = caplog.records[-1]
        assert record.operation == "reserve"
        assert record.schedule == "c_l_2025-01-06"
