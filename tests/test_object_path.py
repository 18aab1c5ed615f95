from __future__ import annotations

import pytest

from kommanderctl.core.errors import ExtractionMissError
from kommanderctl.core.object_path import extract, get, has, parse_path

BODY = {
    "KommanderMsg": "KommanderMsg_PrePlanUsageMark",
    "data": {
        "outPutingId": 3,
        "items": [{"name": "Opening"}, {"name": "Keynote"}],
        "a.b": "dotted",
        "flag": False,
        "empty": None,
    },
}


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("data", ("data",)),
        ("data.items[0].name", ("data", "items", 0, "name")),
        ('data["a.b"]', ("data", "a.b")),
        ("data['a.b']", ("data", "a.b")),
        ("[0][1]", (0, 1)),
    ],
)
def test_parse_path(path: str, expected: tuple) -> None:
    assert parse_path(path) == expected


@pytest.mark.parametrize("path", ["", ".data", "data.", "data..items", "data[0", "data[x]", "data[0]name"])
def test_parse_path_rejects_malformed(path: str) -> None:
    with pytest.raises(ExtractionMissError):
        parse_path(path)


def test_extract_nested_values() -> None:
    assert extract(BODY, "data.outPutingId") == 3
    assert extract(BODY, "data.items[1].name") == "Keynote"
    assert extract(BODY, "data.items.0.name") == "Opening"
    assert extract(BODY, 'data["a.b"]') == "dotted"


def test_extract_keeps_falsy_values() -> None:
    assert extract(BODY, "data.flag") is False
    assert extract(BODY, "data.empty") is None


@pytest.mark.parametrize("path", ["data.missing", "data.items[5]", "data.outPutingId.deeper", "data.items.first"])
def test_extract_miss_raises(path: str) -> None:
    with pytest.raises(ExtractionMissError):
        extract(BODY, path)


def test_has_and_get() -> None:
    assert has(BODY, "data.items[0]")
    assert not has(BODY, "data.items[9]")
    assert not has(BODY, "data..x")
    assert get(BODY, "data.missing", "fallback") == "fallback"
    assert get(BODY, "data.outPutingId") == 3
