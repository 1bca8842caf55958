"""
Scoring configuration.

Defines the scored features, the baseline threshold tables each feature is
bucketed against, and the weight applied to each feature's contribution.
Tables and weights are supplied by the caller; the defaults below are the
reference population baseline.
"""

import json
import math
import numbers
import pathlib
import typing
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidConfigurationError


class Feature(Enum):
    """
    The five patient attributes that contribute to a score.
    """
    AGE = "age"
    DISTANCE = "distance"
    ACCEPTED_OFFERS = "accepted_offers"
    CANCELED_OFFERS = "canceled_offers"
    AVERAGE_REPLY_TIME = "average_reply_time"

    @classmethod
    def from_label(cls, label: typing.Union[str, "Feature"]) -> "Feature":
        """
        Convert a configuration key into the corresponding enum.
        Accepts snake_case, camelCase and the legacy baseline names.
        """
        if isinstance(label, cls):
            return label
        key = str(label).strip().replace("-", "_").replace(" ", "_").lower()
        key = key.replace("_", "")
        mapping = {
            "age": cls.AGE,
            "distance": cls.DISTANCE,
            "distancetofacility": cls.DISTANCE,
            "acceptedoffers": cls.ACCEPTED_OFFERS,
            "numacceptedoffers": cls.ACCEPTED_OFFERS,
            "canceledoffers": cls.CANCELED_OFFERS,
            "cancelledoffers": cls.CANCELED_OFFERS,
            "numcanceledoffers": cls.CANCELED_OFFERS,
            "averagereplytime": cls.AVERAGE_REPLY_TIME,
            "avgreplytime": cls.AVERAGE_REPLY_TIME,
            "replytime": cls.AVERAGE_REPLY_TIME,
        }
        try:
            return mapping[key]
        except KeyError:
            raise InvalidConfigurationError(f"Unknown feature label: {label!r}")


def _features_from_mapping(
    mapping: typing.Mapping[typing.Any, typing.Any], what: str
) -> dict[Feature, typing.Any]:
    # resolve every key, then insist on exactly one entry per feature
    if not isinstance(mapping, typing.Mapping):
        raise InvalidConfigurationError(f"{what} must be a mapping, got {type(mapping).__name__}")
    resolved: dict[Feature, typing.Any] = {}
    for key, value in mapping.items():
        feature = Feature.from_label(key)
        if feature in resolved:
            raise InvalidConfigurationError(f"{what}: duplicate entry for {feature.value!r}")
        resolved[feature] = value
    missing = [feature.value for feature in Feature if feature not in resolved]
    if missing:
        raise InvalidConfigurationError(f"{what}: missing entries for {missing}")
    return resolved


def _check_real(what: str, value: typing.Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise InvalidConfigurationError(f"{what}: expected a finite number, got {value!r}")
    return value


def _read_json(path: typing.Union[str, pathlib.Path], what: str) -> typing.Any:
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidConfigurationError(f"Cannot read {what} from {str(path)!r}: {e}") from e


@dataclass(frozen=True)
class BaselineBuckets:
    """
    Ascending threshold tables, one per feature.

    Attributes:
        age: Age thresholds in years.
        distance: Patient-to-facility distance thresholds in meters.
        accepted_offers: Accepted-offer count thresholds.
        canceled_offers: Canceled-offer count thresholds.
        average_reply_time: Reply time thresholds in seconds.
    """

    age: tuple[float, ...]
    distance: tuple[float, ...]
    accepted_offers: tuple[float, ...]
    canceled_offers: tuple[float, ...]
    average_reply_time: tuple[float, ...]

    def __post_init__(self):
        for feature in Feature:
            table = getattr(self, feature.value)
            if isinstance(table, (str, bytes)) or not isinstance(table, typing.Iterable):
                raise InvalidConfigurationError(
                    f"Baseline table {feature.value!r} must be a sequence of numbers, got {table!r}"
                )
            table = tuple(table)
            if not table:
                raise InvalidConfigurationError(f"Baseline table {feature.value!r} is empty")
            for threshold in table:
                _check_real(f"Baseline table {feature.value!r}", threshold)
            object.__setattr__(self, feature.value, table)

    def table(self, feature: Feature) -> tuple[float, ...]:
        return getattr(self, feature.value)

    def unordered_features(self) -> list[Feature]:
        """Features whose table is not strictly ascending."""
        return [
            feature
            for feature in Feature
            if any(a >= b for a, b in zip(self.table(feature), self.table(feature)[1:]))
        ]

    def to_dict(self) -> dict[str, list[float]]:
        return {feature.value: list(self.table(feature)) for feature in Feature}

    @classmethod
    def from_mapping(cls, mapping: typing.Mapping[typing.Any, typing.Any]) -> "BaselineBuckets":
        resolved = _features_from_mapping(mapping, "Baseline")
        return cls(**{feature.value: table for feature, table in resolved.items()})

    @classmethod
    def from_json(cls, path: typing.Union[str, pathlib.Path]) -> "BaselineBuckets":
        return cls.from_mapping(_read_json(path, "baseline"))


@dataclass(frozen=True)
class Weights:
    """
    One weight per feature. Weights are not required to sum to 1.
    """

    age: float
    distance: float
    accepted_offers: float
    canceled_offers: float
    average_reply_time: float

    def __post_init__(self):
        for feature in Feature:
            _check_real(f"Weight {feature.value!r}", getattr(self, feature.value))

    def weight(self, feature: Feature) -> float:
        return getattr(self, feature.value)

    def to_dict(self) -> dict[str, float]:
        return {feature.value: self.weight(feature) for feature in Feature}

    @classmethod
    def from_mapping(cls, mapping: typing.Mapping[typing.Any, typing.Any]) -> "Weights":
        resolved = _features_from_mapping(mapping, "Weights")
        return cls(**{feature.value: weight for feature, weight in resolved.items()})

    @classmethod
    def from_json(cls, path: typing.Union[str, pathlib.Path]) -> "Weights":
        return cls.from_mapping(_read_json(path, "weights"))


def polarity_flags(
    invert_polarity: typing.Optional[typing.Mapping[typing.Any, bool]],
) -> dict[Feature, bool]:
    """
    Normalize per-feature inversion flags; features not named are not inverted.
    """
    flags = {feature: False for feature in Feature}
    for key, value in (invert_polarity or {}).items():
        if not isinstance(value, bool):
            raise InvalidConfigurationError(f"Polarity flag for {key!r} must be a boolean, got {value!r}")
        flags[Feature.from_label(key)] = value
    return flags


DEFAULT_BASELINE = BaselineBuckets(
    age=(21, 35, 45, 55, 65),
    distance=(0, 3000, 6000, 9000, 12000),
    accepted_offers=(0, 8, 19, 29, 39, 48, 59, 69, 79, 89),
    canceled_offers=(0, 10, 21, 30, 41, 51, 60, 72, 82, 91),
    average_reply_time=(1, 377, 738, 1073, 1456, 1774, 2112, 2516, 2938, 3251),
)

DEFAULT_WEIGHTS = Weights(
    age=0.1,
    distance=0.1,
    accepted_offers=0.3,
    canceled_offers=0.3,
    average_reply_time=0.2,
)

# Inverted distance score by rank: closest bucket first
DISTANCE_MULTIPLIERS = (10, 8, 6, 4, 2)
