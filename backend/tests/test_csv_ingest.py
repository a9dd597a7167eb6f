"""Tests for the streaming CSV readers."""

import pytest

from app.services.csv_ingest import CsvReadError, count_rows, iter_rows
from conftest import csv_text


def test_count_rows_handles_quoted_newlines(write_csv):
    path = write_csv(
        csv_text(
            'Ada,ada@acme.io,,"Acme\nResearch"',
            '"Babbage, Charles",charles@acme.io,555,"Line one\nline two\nline three"',
            "Grace,grace@acme.io,,Navy",
        )
    )
    assert count_rows(path) == 3


def test_iter_rows_numbers_data_rows_from_one(write_csv):
    path = write_csv(csv_text("Ada,ada@acme.io,,Acme", "Bob,bob@acme.io,,Acme"))
    rows = list(iter_rows(path))
    assert [number for number, _ in rows] == [1, 2]
    assert rows[1][1]["name"] == "Bob"


def test_header_only_file_has_no_rows(write_csv):
    path = write_csv(csv_text())
    assert count_rows(path) == 0
    assert list(iter_rows(path)) == []


def test_headers_are_normalized(write_csv):
    path = write_csv("\ufeff Name ,EMAIL,Phone,Company\nAda,ada@acme.io,1,Acme\n")
    [(_, row)] = list(iter_rows(path))
    assert row == {"name": "Ada", "email": "ada@acme.io", "phone": "1", "company": "Acme"}


def test_short_rows_yield_missing_values(write_csv):
    path = write_csv(csv_text("Ada,ada@acme.io"))
    [(_, row)] = list(iter_rows(path))
    assert row["company"] is None


def test_empty_file_is_fatal(write_csv):
    path = write_csv("")
    with pytest.raises(CsvReadError, match="empty"):
        count_rows(path)


def test_missing_required_columns_is_fatal(write_csv):
    path = write_csv("name,phone\nAda,1\n")
    with pytest.raises(CsvReadError, match="Missing required column"):
        list(iter_rows(path))


def test_missing_file_is_fatal(tmp_path):
    with pytest.raises(CsvReadError, match="not found"):
        count_rows(tmp_path / "gone.csv")


def test_undecodable_bytes_are_fatal(tmp_path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"name,email,phone,company\nJos\xe9,jose@acme.io,,Acme\n")
    with pytest.raises(CsvReadError, match="encoding"):
        count_rows(path)
