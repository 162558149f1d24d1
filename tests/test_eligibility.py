"""Unit tests for the trip eligibility rules."""

from datetime import datetime, timedelta, timezone

import pytest

from fleetflow.domain.eligibility import check_eligibility, ensure_eligible
from fleetflow.domain.entities import DriverSnapshot, VehicleSnapshot
from fleetflow.domain.enums import (
    DriverStatus,
    EligibilityRule,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.errors import EligibilityRejection

NOW = datetime(2026, 6, 1, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


def _vehicle(**overrides) -> VehicleSnapshot:
    fields = dict(
        id=1,
        vehicle_type=VehicleType.VAN,
        max_load_kg=500.0,
        odometer_km=1000.0,
        status=VehicleStatus.AVAILABLE,
    )
    fields.update(overrides)
    return VehicleSnapshot(**fields)


def _driver(**overrides) -> DriverSnapshot:
    fields = dict(
        id=1,
        license_expiry=TODAY + timedelta(days=30),
        status=DriverStatus.OFF_DUTY,
        categories=frozenset({VehicleType.VAN}),
    )
    fields.update(overrides)
    return DriverSnapshot(**fields)


class TestCapacity:
    def test_load_at_capacity_passes(self):
        assert check_eligibility(500, _vehicle(), _driver(), NOW) is None

    def test_overload_rejected(self):
        failure = check_eligibility(600, _vehicle(), _driver(), NOW)
        assert failure.rule == EligibilityRule.CAPACITY
        assert "600 kg" in failure.message
        assert failure.context == {"cargo_weight_kg": 600, "max_load_kg": 500.0}


class TestLicense:
    def test_expired_yesterday_rejected(self):
        driver = _driver(license_expiry=TODAY - timedelta(days=1))
        failure = check_eligibility(100, _vehicle(), driver, NOW)
        assert failure.rule == EligibilityRule.LICENSE_EXPIRED

    def test_expiring_today_rejected(self):
        driver = _driver(license_expiry=TODAY)
        failure = check_eligibility(100, _vehicle(), driver, NOW)
        assert failure.rule == EligibilityRule.LICENSE_EXPIRED
        assert failure.context == {"license_expiry": TODAY.isoformat()}

    def test_expiring_today_rejected_from_midnight(self):
        driver = _driver(license_expiry=TODAY)
        midnight = datetime(2026, 6, 1, tzinfo=timezone.utc)
        assert check_eligibility(100, _vehicle(), driver, midnight) is not None

    def test_expiring_tomorrow_is_valid(self):
        driver = _driver(license_expiry=TODAY + timedelta(days=1))
        late_evening = datetime(2026, 6, 1, 23, 59, tzinfo=timezone.utc)
        assert check_eligibility(100, _vehicle(), driver, late_evening) is None

    def test_naive_now_taken_as_utc(self):
        driver = _driver(license_expiry=TODAY)
        failure = check_eligibility(100, _vehicle(), driver, datetime(2026, 6, 1, 0, 1))
        assert failure.rule == EligibilityRule.LICENSE_EXPIRED


class TestCategories:
    def test_uncertified_type_rejected(self):
        driver = _driver(categories=frozenset({VehicleType.TRUCK}))
        failure = check_eligibility(100, _vehicle(), driver, NOW)
        assert failure.rule == EligibilityRule.CATEGORY_MISMATCH
        assert failure.context["driver_categories"] == ["truck"]

    def test_empty_categories_unrestricted_by_default(self):
        driver = _driver(categories=frozenset())
        assert check_eligibility(100, _vehicle(), driver, NOW) is None

    def test_empty_categories_rejected_when_strict(self):
        driver = _driver(categories=frozenset())
        failure = check_eligibility(
            100, _vehicle(), driver, NOW, strict_categories=True
        )
        assert failure.rule == EligibilityRule.CATEGORY_MISMATCH
        assert "none" in failure.message


class TestAvailability:
    @pytest.mark.parametrize(
        "status",
        [
            VehicleStatus.ON_TRIP,
            VehicleStatus.IN_SHOP,
            VehicleStatus.RETIRED,
            VehicleStatus.OUT_OF_SERVICE,
        ],
    )
    def test_unavailable_vehicle_rejected(self, status):
        failure = check_eligibility(100, _vehicle(status=status), _driver(), NOW)
        assert failure.rule == EligibilityRule.VEHICLE_UNAVAILABLE
        assert failure.context["vehicle_status"] == status.value

    def test_suspended_driver_rejected(self):
        driver = _driver(status=DriverStatus.SUSPENDED)
        failure = check_eligibility(100, _vehicle(), driver, NOW)
        assert failure.rule == EligibilityRule.DRIVER_SUSPENDED

    def test_on_duty_driver_accepted(self):
        driver = _driver(status=DriverStatus.ON_DUTY)
        assert check_eligibility(100, _vehicle(), driver, NOW) is None


class TestRuleOrder:
    def test_capacity_checked_before_license(self):
        driver = _driver(license_expiry=TODAY - timedelta(days=10))
        failure = check_eligibility(900, _vehicle(), driver, NOW)
        assert failure.rule == EligibilityRule.CAPACITY

    def test_vehicle_checked_before_driver_status(self):
        failure = check_eligibility(
            100,
            _vehicle(status=VehicleStatus.IN_SHOP),
            _driver(status=DriverStatus.SUSPENDED),
            NOW,
        )
        assert failure.rule == EligibilityRule.VEHICLE_UNAVAILABLE


def test_ensure_eligible_raises_rejection():
    with pytest.raises(EligibilityRejection) as exc:
        ensure_eligible(600, _vehicle(), _driver(), NOW)
    assert exc.value.rule == EligibilityRule.CAPACITY
    assert exc.value.context["rule"] == "capacity"
    assert exc.value.to_dict()["code"] == "eligibility_rejected"
