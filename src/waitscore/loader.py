import functools
import json
import logging
import pathlib
import typing
import zipfile

import pandas as pd
import requests
from openpyxl.utils.exceptions import InvalidFileException

from .errors import RecordLoadError

logger = logging.getLogger(__name__)

# Normalized tabular headers that need renaming → PatientRecord field names
RENAME_MAP = {
    "patient_id": "id",
    "patient_name": "name",
    "lat": "latitude",
    "lon": "longitude",
    "lng": "longitude",
    "long": "longitude",
    "cancelled_offers": "canceled_offers",
    "num_accepted_offers": "accepted_offers",
    "num_canceled_offers": "canceled_offers",
    "avg_reply_time": "average_reply_time",
    "reply_time": "average_reply_time",
}

TABULAR_SUFFIXES = {".csv", ".xlsx"}

# Opaque identifiers: never let type inference turn "007" into 7
TEXT_FIELDS = {"id", "name"}


def load_patient_records(locator: typing.Union[str, pathlib.Path], timeout: float = 30.0) -> list[dict]:
    """
    Resolve a locator into a list of raw patient mappings:
      - http(s) URL  → JSON array fetched with requests
      - *.json       → JSON array of patient objects
      - *.csv        → one patient per row
      - *.xlsx       → one patient per row of the first worksheet
    The mappings are not validated here; PatientRecord.from_mapping does that.
    """
    text = str(locator)
    if text.startswith(("http://", "https://")):
        records = _fetch_json(text, timeout)
    else:
        path = pathlib.Path(locator)
        if not path.is_file():
            raise RecordLoadError(f"Patient file not found: {text!r}")
        suffix = path.suffix.lower()
        if suffix == ".json":
            records = _read_json(path)
        elif suffix in TABULAR_SUFFIXES:
            records = _table_to_records(_read_table(path))
        else:
            raise RecordLoadError(f"Unsupported patient file type {suffix!r} for {text!r}")

    logger.info("Loaded %d patient records from %s", len(records), text)
    return records


def _fetch_json(url: str, timeout: float) -> list[dict]:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise RecordLoadError(f"Failed to fetch patients from {url!r}: {e}") from e
    return _expect_array(payload, url)


def _read_json(path: pathlib.Path) -> list[dict]:
    try:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise RecordLoadError(f"Failed to read {str(path)!r}: {e}") from e
    return _expect_array(payload, str(path))


def _expect_array(payload: typing.Any, source: str) -> list[dict]:
    if not isinstance(payload, list):
        raise RecordLoadError(f"Expected a JSON array of patients in {source!r}, got {type(payload).__name__}")
    return payload


def _read_table(path: pathlib.Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        reader = pd.read_csv
    else:
        reader = functools.partial(pd.read_excel, sheet_name=0, header=0, engine="openpyxl")
    try:
        # read the header first so identifier columns can be kept as text (e.g. "007")
        header = reader(path, nrows=0)
        normalized = normalize_columns(header).columns
        text_columns = {
            orig: str
            for orig, target in zip(header.columns, normalized)
            if target in TEXT_FIELDS
        }
        return reader(path, dtype=text_columns)
    except (OSError, ValueError, zipfile.BadZipFile, InvalidFileException) as e:
        raise RecordLoadError(f"Failed to read {str(path)!r}: {e}") from e


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize headers to snake_case lowercase:
      - drop any "(…)" unit annotations
      - split camelCase words
      - spaces/hyphens → underscore
      - apply renames from RENAME_MAP
    """
    df = df.copy()
    df.columns = (
        df.columns.astype(str)
        .str.strip()
        .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
        .str.replace(r"(?<=[a-z0-9])(?=[A-Z])", "_", regex=True)  # camelCase → camel_Case
        .str.replace(r"[\s\-]+", "_", regex=True)  # spaces → underscore
        .str.lower()
    )
    return df.rename(
        columns={
            orig: target
            for orig, target in RENAME_MAP.items()
            if orig in df.columns
        }
    )


def _table_to_records(df: pd.DataFrame) -> list[dict]:
    df = normalize_columns(df)
    # empty cells → None so they read as missing fields
    df = df.astype(object).where(df.notna(), None)
    return df.to_dict(orient="records")
