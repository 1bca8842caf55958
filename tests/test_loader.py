"""
Record loading from files and URLs.

Network access is patched out: requests.get is replaced with a Mock.
"""

import json
from unittest.mock import Mock, patch

import pandas as pd
import pytest
import requests

from waitscore.errors import RecordLoadError
from waitscore.loader import load_patient_records, normalize_columns
from waitscore.patient import PatientRecord


@pytest.fixture
def patient_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Patient ID": ["x1", "x2"],
            "Name": ["Ada", "Bo"],
            "Age (years)": [67, 31],
            "Lat": [46.7110, 46.9000],
            "Lng": [1.7181, 1.5000],
            "acceptedOffers": [30, 2],
            "Cancelled Offers": [4, None],
            "avgReplyTime": [120.5, 900],
        }
    )


def test_load_json_file(fpath_patients):
    records = load_patient_records(fpath_patients)
    assert [r["id"] for r in records] == ["a1f3", "b27c", "c9d0", "d415"]
    assert records[0]["location"] == {"latitude": 46.7110, "longitude": 1.7181}


def test_load_csv_file(tmp_path, patient_frame):
    path = tmp_path / "waitlist.csv"
    patient_frame.to_csv(path, index=False)
    records = load_patient_records(path)

    first = PatientRecord.from_mapping(records[0])
    assert first.id == "x1"
    assert first.canceled_offers == 4
    assert first.location.latitude == pytest.approx(46.7110)
    # the blank cell reads as a missing field, not NaN
    assert records[1]["canceled_offers"] is None


def test_load_excel_file(tmp_path, patient_frame):
    path = tmp_path / "waitlist.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        patient_frame.to_excel(w, sheet_name="patients", index=False)
    records = load_patient_records(str(path))
    assert len(records) == 2
    assert PatientRecord.from_mapping(records[0]).average_reply_time == pytest.approx(120.5)


def test_normalize_columns(patient_frame):
    columns = list(normalize_columns(patient_frame).columns)
    assert columns == [
        "id", "name", "age", "latitude", "longitude",
        "accepted_offers", "canceled_offers", "average_reply_time",
    ]


def test_load_from_url():
    payload = [{"id": 1}]
    with patch("waitscore.loader.requests.get", return_value=Mock(status_code=200, json=lambda: payload)) as get:
        assert load_patient_records("https://example.org/patients") == payload
    get.assert_called_once()


def test_url_http_error_raises():
    resp = Mock()
    resp.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
    with patch("waitscore.loader.requests.get", return_value=resp):
        with pytest.raises(RecordLoadError, match="503"):
            load_patient_records("https://example.org/patients")


def test_missing_file_raises(tmp_path):
    with pytest.raises(RecordLoadError, match="not found"):
        load_patient_records(tmp_path / "nope.json")


def test_unsupported_suffix_raises(tmp_path):
    path = tmp_path / "patients.txt"
    path.write_text("[]")
    with pytest.raises(RecordLoadError, match="Unsupported"):
        load_patient_records(path)


@pytest.mark.parametrize("content", ['{"patients": []}', "[{broken"])
def test_bad_json_raises(tmp_path, content):
    path = tmp_path / "patients.json"
    path.write_text(content)
    with pytest.raises(RecordLoadError):
        load_patient_records(path)


def test_empty_json_array(tmp_path):
    path = tmp_path / "patients.json"
    path.write_text(json.dumps([]))
    assert load_patient_records(path) == []


@pytest.mark.parametrize("content", [b"\xd0\xcf\x11\xe0 not a zip archive", b"id,name\n1,a\n"])
def test_unreadable_workbook_raises(tmp_path, content):
    """Bytes that are not an OOXML workbook are a load error, not a zip traceback."""
    path = tmp_path / "broken.xlsx"
    path.write_bytes(content)
    with pytest.raises(RecordLoadError, match="Failed to read"):
        load_patient_records(path)


def test_legacy_xls_is_unsupported(tmp_path):
    path = tmp_path / "legacy.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1")
    with pytest.raises(RecordLoadError, match="Unsupported"):
        load_patient_records(path)


def test_csv_identifiers_keep_leading_zeros(tmp_path):
    path = tmp_path / "waitlist.csv"
    path.write_text(
        "Patient ID,Name,age,lat,lon,acceptedOffers,canceledOffers,averageReplyTime\n"
        "007,0042,70,46.7110,1.7181,30,4,120\n"
    )
    [record] = load_patient_records(path)
    assert record["id"] == "007"
    assert record["name"] == "0042"
    assert record["age"] == 70
    assert PatientRecord.from_mapping(record).id == "007"


def test_excel_identifiers_stay_text(tmp_path):
    path = tmp_path / "waitlist.xlsx"
    frame = pd.DataFrame({"id": ["007"], "name": ["Ada"], "age": [70], "latitude": [1.0], "longitude": [2.0],
                          "accepted_offers": [30], "canceled_offers": [4], "average_reply_time": [120]})
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        frame.to_excel(w, index=False)
    [record] = load_patient_records(path)
    assert record["id"] == "007"
