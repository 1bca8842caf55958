"""
Waitlist acceptance scoring.

High-level flow
---------------
For each patient, in input order:
1) Sufficiency gate: fewer than MIN_INTERACTIONS accepted + canceled offers
   routes the patient to ``insufficient_data`` with the NEED_MORE_DATA marker.
2) Otherwise every feature is bucketed against its baseline table
   (distance comes from the great-circle distance to the facility).
3) Each rank becomes a weighted contribution:
     age                 (rank * 2) * weight
     distance            DISTANCE_MULTIPLIERS[rank] * weight  (closer is better)
     accepted_offers     rank * weight
     canceled_offers     rank * weight
     average_reply_time  rank * weight
4) The contributions are summed into the patient's score.

The whole batch is validated before any score is computed; one malformed
record raises MalformedRecordError and nothing is returned.
"""

import abc
import logging
import typing
from dataclasses import dataclass, field

import pandas as pd
from stairval.notepad import Notepad

from .baseline import (
    DEFAULT_BASELINE,
    DEFAULT_WEIGHTS,
    DISTANCE_MULTIPLIERS,
    BaselineBuckets,
    Feature,
    Weights,
    polarity_flags,
)
from .bucket import find_bucket
from .errors import InvalidConfigurationError, MalformedRecordError
from .geodesic import distance_between
from .location import GeoPoint, facility_location
from .patient import PatientRecord

logger = logging.getLogger(__name__)

MIN_INTERACTIONS = 20
NEED_MORE_DATA = "need more data"

PatientInput = typing.Union[PatientRecord, typing.Mapping[str, typing.Any]]


@dataclass
class ScoredResult:
    """
    Outcome for one patient.

    Attributes:
        id: Patient identifier, copied from the record.
        name: Patient name, copied from the record.
        score: Weighted total, or NEED_MORE_DATA for gated patients.
        contributions: Optional per-feature weighted contributions.
    """

    id: typing.Any
    name: typing.Any
    score: typing.Union[float, str]
    contributions: typing.Optional[dict[str, float]] = None

    @property
    def has_score(self) -> bool:
        return self.score != NEED_MORE_DATA

    def to_dict(self) -> dict[str, typing.Any]:
        out = {"id": self.id, "name": self.name, "score": self.score}
        if self.contributions is not None:
            out["contributions"] = dict(self.contributions)
        return out


@dataclass
class ResultSet:
    """
    Scored and gated patients, each list in input order.
    """

    sufficient_data: list[ScoredResult] = field(default_factory=list)
    insufficient_data: list[ScoredResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sufficient_data) + len(self.insufficient_data)

    def to_dict(self) -> dict[str, list[dict[str, typing.Any]]]:
        return {
            "sufficientData": [result.to_dict() for result in self.sufficient_data],
            "insufficientData": [result.to_dict() for result in self.insufficient_data],
        }

    def to_frame(self) -> pd.DataFrame:
        """
        One row per patient: scored patients first, then gated ones.
        Contribution columns appear when a breakdown was requested.
        """
        rows = []
        for sufficient, results in ((True, self.sufficient_data), (False, self.insufficient_data)):
            for result in results:
                row = {
                    "id": result.id,
                    "name": result.name,
                    "score": result.score,
                    "sufficient_data": sufficient,
                }
                row.update(result.contributions or {})
                rows.append(row)
        return pd.DataFrame(rows, columns=_frame_columns(rows))


def _frame_columns(rows: list[dict[str, typing.Any]]) -> list[str]:
    columns = ["id", "name", "score", "sufficient_data"]
    for row in rows:
        columns.extend(key for key in row if key not in columns)
    return columns


def has_sufficient_data(patient: PatientRecord) -> bool:
    return patient.interactions >= MIN_INTERACTIONS


def coerce_batch(patients: typing.Iterable[PatientInput]) -> list[PatientRecord]:
    """
    Turn every input into a PatientRecord, failing the whole batch on the first
    malformed one.
    """
    records: list[PatientRecord] = []
    for index, patient in enumerate(patients):
        if isinstance(patient, PatientRecord):
            records.append(patient)
            continue
        try:
            records.append(PatientRecord.from_mapping(patient))
        except MalformedRecordError as e:
            patient_id = patient.get("id") if isinstance(patient, typing.Mapping) else None
            raise MalformedRecordError(f"Record {index} (id={patient_id!r}): {e}") from e
    return records


class PatientScorer(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def score(
            self,
            facility: typing.Any,
            patients: typing.Iterable[PatientInput],
            notepad: typing.Optional[Notepad] = None,
    ) -> ResultSet:
        # return every patient, partitioned into scored and gated results
        raise NotImplementedError


class DefaultScorer(PatientScorer):
    def __init__(
            self,
            baseline: BaselineBuckets = DEFAULT_BASELINE,
            weights: Weights = DEFAULT_WEIGHTS,
            invert_polarity: typing.Optional[typing.Mapping[typing.Any, bool]] = None,
            include_breakdown: bool = False,
    ):
        """
        - invert_polarity: per-feature flags; an inverted rank r over N
          thresholds is replaced by N + 2 - r
        - include_breakdown: attach per-feature contributions to each result
        """
        if not isinstance(baseline, BaselineBuckets):
            raise InvalidConfigurationError(f"baseline must be BaselineBuckets, got {type(baseline).__name__}")
        if not isinstance(weights, Weights):
            raise InvalidConfigurationError(f"weights must be Weights, got {type(weights).__name__}")
        self._baseline = baseline
        self._weights = weights
        self._invert = polarity_flags(invert_polarity)
        self.include_breakdown = include_breakdown

    def score(
            self,
            facility: typing.Any,
            patients: typing.Iterable[PatientInput],
            notepad: typing.Optional[Notepad] = None,
    ) -> ResultSet:
        """
        Process:
        1) validate the facility location and every patient record
        2) flag non-ascending baseline tables
        3) gate, rank and weight each patient in input order
        """
        facility = facility_location(facility)
        records = coerce_batch(patients)
        self._check_table_order(notepad)

        results = ResultSet()
        for record in records:
            if not has_sufficient_data(record):
                logger.debug("Patient %r has %d interactions; needs more data", record.id, record.interactions)
                results.insufficient_data.append(ScoredResult(record.id, record.name, NEED_MORE_DATA))
                continue

            contributions = self.feature_contributions(facility, record, notepad)
            total = sum(contributions.values())
            logger.debug("Patient %r scored %s", record.id, total)
            results.sufficient_data.append(
                ScoredResult(
                    record.id,
                    record.name,
                    total,
                    contributions if self.include_breakdown else None,
                )
            )

        logger.info(
            "Scored %d of %d patients (%d need more data)",
            len(results.sufficient_data), len(results), len(results.insufficient_data),
        )
        return results

    def feature_contributions(
            self, facility: GeoPoint, patient: PatientRecord, notepad: typing.Optional[Notepad] = None
    ) -> dict[str, float]:
        """
        Weighted contribution of each feature, keyed by feature name, in the
        order they are summed.
        """
        w = self._weights
        distance_m = distance_between(patient.location, facility)

        age_rank = self.rank(Feature.AGE, patient.age, patient, notepad)
        distance_rank = self.rank(Feature.DISTANCE, distance_m, patient, notepad)
        accepted_rank = self.rank(Feature.ACCEPTED_OFFERS, patient.accepted_offers, patient, notepad)
        canceled_rank = self.rank(Feature.CANCELED_OFFERS, patient.canceled_offers, patient, notepad)
        reply_rank = self.rank(Feature.AVERAGE_REPLY_TIME, patient.average_reply_time, patient, notepad)

        return {
            Feature.AGE.value: (age_rank * 2) * w.age,
            Feature.DISTANCE.value: self.distance_multiplier(distance_rank) * w.distance,
            Feature.ACCEPTED_OFFERS.value: accepted_rank * w.accepted_offers,
            Feature.CANCELED_OFFERS.value: canceled_rank * w.canceled_offers,
            Feature.AVERAGE_REPLY_TIME.value: reply_rank * w.average_reply_time,
        }

    def rank(
            self,
            feature: Feature,
            value: float,
            patient: typing.Optional[PatientRecord] = None,
            notepad: typing.Optional[Notepad] = None,
    ) -> int:
        thresholds = self._baseline.table(feature)
        if value < thresholds[0] and notepad is not None:
            who = f"Patient {patient.id!r}: " if patient is not None else ""
            notepad.add_warning(
                f"{who}{feature.value} {value!r} is below the lowest baseline threshold {thresholds[0]!r}; ranked 1"
            )
        rank = find_bucket(thresholds, value)
        if self._invert[feature]:
            rank = len(thresholds) + 2 - rank
        return rank

    @staticmethod
    def distance_multiplier(rank: int) -> int:
        # ranks past the table saturate to the farthest multiplier
        return DISTANCE_MULTIPLIERS[min(max(rank, 1), len(DISTANCE_MULTIPLIERS)) - 1]

    def _check_table_order(self, notepad: typing.Optional[Notepad]) -> None:
        for feature in self._baseline.unordered_features():
            msg = f"Baseline table {feature.value!r} is not strictly ascending; ranks are unreliable"
            logger.warning(msg)
            if notepad is not None:
                notepad.add_warning(msg)


def score_patients(
        facility: typing.Any,
        patients: typing.Iterable[PatientInput],
        baseline: BaselineBuckets = DEFAULT_BASELINE,
        weights: Weights = DEFAULT_WEIGHTS,
        invert_polarity: typing.Optional[typing.Mapping[typing.Any, bool]] = None,
        notepad: typing.Optional[Notepad] = None,
        include_breakdown: bool = False,
) -> ResultSet:
    """Score a batch with a one-off DefaultScorer."""
    scorer = DefaultScorer(baseline, weights, invert_polarity=invert_polarity, include_breakdown=include_breakdown)
    return scorer.score(facility, patients, notepad)
