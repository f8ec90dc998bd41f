import pytest

from app.core.exceptions import ValidationException
from app.monitoring.prometheus_metrics import REGISTRY
from app.services.base import BaseService


class _PingService(BaseService):
    @BaseService.measure_operation("ping")
    def ping(self, value):
        return value

    @BaseService.measure_operation("explode")
    def explode(self):
        raise ValidationException("nope")


def _count(operation, status):
    value = REGISTRY.get_sample_value(
        "trainer_service_operations_total",
        {"service": "_PingService", "operation": operation, "status": status},
    )
    return value or 0.0


def test_measured_operation_is_published_to_prometheus():
    before = _count("ping", "success")

    assert _PingService(db=None).ping(7) == 7

    assert _count("ping", "success") == before + 1


def test_measured_failure_records_error_type():
    before = _count("explode", "error")
    errors_before = (
        REGISTRY.get_sample_value(
            "trainer_errors_total",
            {"service": "_PingService", "operation": "explode", "error_type": "ValidationException"},
        )
        or 0.0
    )

    with pytest.raises(ValidationException):
        _PingService(db=None).explode()

    assert _count("explode", "error") == before + 1
    assert (
        REGISTRY.get_sample_value(
            "trainer_errors_total",
            {"service": "_PingService", "operation": "explode", "error_type": "ValidationException"},
        )
        == errors_before + 1
    )


def test_service_keeps_no_in_process_metric_store():
    assert not hasattr(BaseService, "_class_metrics")
    assert not hasattr(BaseService, "get_metrics")
