"""
Command-line interface for waitscore.

Loads a facility's waitlist, scores every patient's likelihood of accepting
an offered slot, and prints or saves the partitioned results.
"""

import click
import json
import logging
import pathlib
import sys
import typing

from collections import namedtuple
from datetime import datetime
from stairval.notepad import create_notepad

from .baseline import DEFAULT_BASELINE, DEFAULT_WEIGHTS, BaselineBuckets, Feature, Weights
from .errors import MalformedRecordError, WaitscoreError
from .loader import load_patient_records
from .patient import PatientRecord
from .scoring import DefaultScorer, ResultSet, has_sufficient_data

AuditEntry = namedtuple("AuditEntry", ["record", "step", "message", "level"])

FEATURE_CHOICES = [feature.value for feature in Feature]


@click.group()
def main():
    """waitscore: rank waitlisted patients by how likely they are to accept an open slot."""
    pass


@main.command(name="score")
@click.option(
    "-p",
    "--patients",
    "locator",
    required=True,
    type=str,
    help="patient JSON/CSV/Excel file, or an http(s) URL returning JSON",
)
@click.option("--facility-lat", required=True, type=float, help="facility latitude in degrees")
@click.option("--facility-lon", required=True, type=float, help="facility longitude in degrees")
@click.option(
    "-b",
    "--baseline",
    "baseline_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file of baseline threshold tables (default: built-in baseline)",
)
@click.option(
    "-w",
    "--weights",
    "weights_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file of feature weights (default: built-in weights)",
)
@click.option(
    "--invert",
    "inverted",
    multiple=True,
    type=click.Choice(FEATURE_CHOICES),
    help="score this feature with inverted polarity (repeatable)",
)
@click.option("--breakdown", is_flag=True, help="include per-feature contributions")
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["json", "csv"]),
    default="json",
    show_default=True,
)
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False),
    help="write results into a timestamped folder here instead of stdout",
)
@click.option("--verbose-logging", is_flag=True, help="log scoring decisions to stderr")
@click.option("--log-file", type=click.Path(dir_okay=False, writable=True), help="append logs to this file")
def score(
    locator: str,
    facility_lat: float,
    facility_lon: float,
    baseline_path: typing.Optional[str],
    weights_path: typing.Optional[str],
    inverted: typing.Tuple[str, ...],
    breakdown: bool,
    output_format: str,
    output_dir: typing.Optional[str],
    verbose_logging: bool,
    log_file: typing.Optional[str],
):
    """
    Load the waitlist, then:
      - route patients with too little offer history to "need more data"
      - score everyone else against the baseline tables and weights
    """
    _configure_logging(verbose_logging, log_file)

    try:
        # 1) Configuration
        baseline = BaselineBuckets.from_json(baseline_path) if baseline_path else DEFAULT_BASELINE
        weights = Weights.from_json(weights_path) if weights_path else DEFAULT_WEIGHTS
        scorer = DefaultScorer(
            baseline,
            weights,
            invert_polarity={name: True for name in inverted},
            include_breakdown=breakdown,
        )

        # 2) Load the whole batch before scoring
        records = load_patient_records(locator)

        # 3) Score
        notepad = create_notepad("scoring")
        results = scorer.score((facility_lat, facility_lon), records, notepad)
    except WaitscoreError as e:
        logging.error(str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    # 4) Report data-quality warnings
    _report_issues(notepad, err=True)

    # 5) Emit results
    rendered = _render(results, output_format)
    if output_dir:
        out = _prepare_output_dir(pathlib.Path(output_dir)) / f"scores.{output_format}"
        with open(out, "w", encoding="utf-8") as out_f:
            out_f.write(rendered)
        click.echo(f"Saved scores to {out}")
    else:
        click.echo(rendered)

    # 6) Final summary
    click.echo(f"Scored {len(results.sufficient_data)} patients", err=True)
    click.echo(f"{len(results.insufficient_data)} patients need more data", err=True)


@main.command(name="audit")
@click.option("-p", "--patients", "locator", required=True, type=str, help="patient file or URL")
@click.option("-r", "--raw", is_flag=True, help="print entries as a JSON list")
def audit(locator: str, raw: bool):
    """
    Check every record without stopping at the first bad one.
    """
    try:
        records = load_patient_records(locator)
    except WaitscoreError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    entries = preprocess(records)
    if raw:
        click.echo(json.dumps([entry._asdict() for entry in entries], indent=2, default=str))
        return

    click.echo(f"{'RECORD':10}  {'STEP':14}  {'LEVEL':7}  MESSAGE")
    for entry in entries:
        click.echo(f"{str(entry.record):10}  {entry.step:14}  {entry.level:7}  {entry.message}")


@main.command(name="defaults")
def defaults():
    """Print the built-in baseline tables and weights as JSON."""
    click.echo(
        json.dumps(
            {"baseline": DEFAULT_BASELINE.to_dict(), "weights": DEFAULT_WEIGHTS.to_dict()},
            indent=2,
        )
    )


def _configure_logging(verbose_logging: bool, log_file: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            handlers=handlers,
            force=True,
        )


def _report_issues(notepad, err: bool = False):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in scoring:", err=err)
        for e in notepad.errors():
            click.echo(f"- {e}", err=err)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in scoring:", err=err)
        for w in notepad.warnings():
            click.echo(f"- {w}", err=err)


def _render(results: ResultSet, output_format: str) -> str:
    if output_format == "csv":
        return results.to_frame().to_csv(index=False)
    return json.dumps(results.to_dict(), indent=2, default=str)


def _prepare_output_dir(base: pathlib.Path) -> pathlib.Path:
    # use YYYY-MM-DD_HH-MM-SS for human-readable timestamps
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    output_dir = base / timestamp
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def preprocess(records: typing.Sequence[typing.Any]) -> list[AuditEntry]:
    """
    Audit each raw record:
      - parse-record: can it become a PatientRecord?
      - sufficiency: will it be scored or routed to "need more data"?
    """
    entries: list[AuditEntry] = []
    for index, raw in enumerate(records):
        label = raw.get("id", index) if isinstance(raw, dict) else index
        try:
            patient = PatientRecord.from_mapping(raw)
        except MalformedRecordError as e:
            entries.append(AuditEntry(record=label, step="parse-record", message=str(e), level="error"))
            continue

        if has_sufficient_data(patient):
            message = f"scored ({patient.interactions} interactions)"
        else:
            message = f"need more data ({patient.interactions} interactions)"
        entries.append(AuditEntry(record=label, step="sufficiency", message=message, level="info"))
    return entries


if __name__ == "__main__":
    main()
