"""Input checks shared by the services; each raises ``ValidationError``."""

from __future__ import annotations

import math
from typing import Any

from .entities import Location
from .errors import ValidationError


def check_id(field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(field, f"{field} must be a positive integer.", value)


def check_amount(field: str, value: Any) -> None:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value < 0
    ):
        raise ValidationError(field, f"{field} must be a number >= 0.", value)


def check_text(field: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, f"{field} is required.", value)


def check_location(field: str, location: Location) -> None:
    if not location.address or not location.address.strip():
        raise ValidationError(f"{field}.address", f"{field} address is required.")
    if location.latitude is not None and not -90 <= location.latitude <= 90:
        raise ValidationError(
            f"{field}.latitude", "Latitude must be between -90 and 90.", location.latitude
        )
    if location.longitude is not None and not -180 <= location.longitude <= 180:
        raise ValidationError(
            f"{field}.longitude",
            "Longitude must be between -180 and 180.",
            location.longitude,
        )
