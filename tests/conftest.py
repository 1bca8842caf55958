import os
import pytest

from waitscore.location import GeoPoint


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_patients(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "patients.json")


@pytest.fixture
def facility() -> GeoPoint:
    """
    The facility every patient in `patients.json` is measured against.
    """
    return GeoPoint(latitude=46.7110, longitude=1.7181)


@pytest.fixture
def make_patient():
    """
    Factory for raw patient mappings in the JSON wire shape; keyword
    arguments override the defaults.
    """

    def _make(**overrides):
        raw = {
            "id": "p1",
            "name": "Test Patient",
            "location": {"latitude": 46.7110, "longitude": 1.7181},
            "age": 50,
            "acceptedOffers": 15,
            "canceledOffers": 10,
            "averageReplyTime": 500,
        }
        raw.update(overrides)
        return raw

    return _make
