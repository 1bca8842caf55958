"""
Patient domain model.

Defines the PatientRecord dataclass for one waitlisted patient, with
validation of every attribute the scoring engine reads.
"""

import math
import numbers
import typing
from dataclasses import dataclass

from .errors import MalformedRecordError
from .location import GeoPoint

# Accepted spellings for each field → dataclass attribute
FIELD_ALIASES = {
    "id": ("id", "patient_id", "patientId"),
    "name": ("name",),
    "age": ("age",),
    "accepted_offers": ("acceptedOffers", "accepted_offers"),
    "canceled_offers": ("canceledOffers", "canceled_offers", "cancelledOffers", "cancelled_offers"),
    "average_reply_time": ("averageReplyTime", "average_reply_time"),
}

INTEGER_FIELDS = ("age", "accepted_offers", "canceled_offers")


@dataclass(frozen=True)
class PatientRecord:
    """
    Represents a single patient on a facility's waitlist.

    Attributes:
        id: Opaque patient identifier, passed through unchanged.
        name: Opaque display name, passed through unchanged.
        age: Age in whole years (non-negative).
        location: Home coordinates of the patient.
        accepted_offers: Lifetime count of accepted slot offers.
        canceled_offers: Lifetime count of canceled slot offers.
        average_reply_time: Mean time to answer an offer, in seconds.
    """

    id: typing.Any
    name: typing.Any
    age: int
    location: GeoPoint
    accepted_offers: int
    canceled_offers: int
    average_reply_time: float

    def __post_init__(self):
        for field_name in INTEGER_FIELDS:
            value = getattr(self, field_name)
            _check_number(field_name, value)
            if isinstance(value, float) and not value.is_integer():
                raise MalformedRecordError(f"{field_name} must be a whole number, got {value!r}")
            # frozen: integral floats from tabular sources are stored as int
            object.__setattr__(self, field_name, int(value))

        _check_number("average_reply_time", self.average_reply_time)

        if not isinstance(self.location, GeoPoint):
            raise MalformedRecordError(
                f"location must be a GeoPoint, got {type(self.location).__name__}"
            )

    @property
    def interactions(self) -> int:
        """Combined accepted and canceled offers."""
        return self.accepted_offers + self.canceled_offers

    @classmethod
    def from_mapping(cls, raw: typing.Mapping[str, typing.Any]) -> "PatientRecord":
        """
        Build a record from a raw mapping.

        Understands the JSON wire shape (``acceptedOffers``,
        ``location: {latitude, longitude}``) as well as snake_case keys with
        flat ``latitude``/``longitude`` columns.
        """
        if not isinstance(raw, typing.Mapping):
            raise MalformedRecordError(f"expected a mapping, got {type(raw).__name__}")

        values = {}
        for field_name, aliases in FIELD_ALIASES.items():
            value = _lookup(raw, aliases)
            if value is None:
                raise MalformedRecordError(f"missing required field {field_name!r}")
            values[field_name] = value

        location_cell = raw.get("location")
        try:
            values["location"] = GeoPoint.coerce(location_cell if location_cell is not None else raw)
        except ValueError as e:
            raise MalformedRecordError(f"invalid location: {e}") from e

        return cls(**values)


def _lookup(raw: typing.Mapping, aliases: typing.Iterable[str]) -> typing.Any:
    for key in aliases:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _check_number(field_name: str, value: typing.Any) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise MalformedRecordError(f"{field_name} must be numeric, got {value!r}")
    if not math.isfinite(value):
        raise MalformedRecordError(f"{field_name} must be finite, got {value!r}")
    if value < 0:
        raise MalformedRecordError(f"{field_name} must be non-negative, got {value!r}")
