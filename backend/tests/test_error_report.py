"""Tests for the downloadable error-report CSV."""

import csv
import io

import pytest

from app.api.schemas.job import RowError
from app.services.error_report import (
    build_error_report,
    render_error_csv,
    report_filename,
)


def _error(row_number, message, **row):
    return RowError(row_number=row_number, message=message, row=row or None)


def test_report_lists_errors_in_row_order():
    content = render_error_csv(
        [
            _error(7, "name is required", name="", email="g@acme.io", phone=None, company="Acme"),
            _error(3, "invalid email", name="Bob", email="nope", phone="555", company="Acme"),
        ]
    )
    assert content == (
        "rowNumber,name,email,phone,company,error\n"
        "3,Bob,nope,555,Acme,invalid email\n"
        "7,,g@acme.io,,Acme,name is required\n"
    )


def test_fields_with_separators_are_quoted():
    content = render_error_csv(
        [
            _error(
                2,
                "name is required, invalid email",
                name='Ada "The Countess"',
                email="bad",
                company="Engines, Ltd\nLondon",
            )
        ]
    )
    [_, line] = list(csv.reader(io.StringIO(content)))
    assert line == [
        "2",
        'Ada "The Countess"',
        "bad",
        "",
        "Engines, Ltd\nLondon",
        "name is required, invalid email",
    ]
    assert '"Ada ""The Countess"""' in content


def test_job_level_error_has_blank_row_fields():
    content = render_error_csv([_error(0, "CSV file appears to be empty or invalid")])
    assert content.splitlines()[1] == "0,,,,,CSV file appears to be empty or invalid"


def test_empty_error_list_is_header_only():
    assert render_error_csv([]) == "rowNumber,name,email,phone,company,error\n"


@pytest.mark.parametrize(
    "source, expected",
    [
        ("customers.csv", "customers_errors.csv"),
        ("Customers (May).csv", "Customers_May__errors.csv"),
        ("archive.2024.csv", "archive_2024_errors.csv"),
        (".csv", "job_errors.csv"),
        ("", "job_errors.csv"),
        (None, "job_errors.csv"),
        ("客户.csv", "job_errors.csv"),
        ("Café clients.csv", "Caf_clients_errors.csv"),
    ],
)
def test_report_filename(source, expected):
    assert report_filename(source) == expected


def test_build_error_report_for_stored_job(job_store):
    job = job_store.create("Q3 leads.csv")
    job.errors = [
        {"row_number": 4, "message": "email must be unique", "row": {"name": "Ada", "email": "a@acme.io"}},
        {"row_number": 1, "message": "company is required", "row": {"name": "Bob", "email": "b@acme.io"}},
    ]
    job_store.save(job)

    report = build_error_report(job_store, job.id)

    assert report.filename == "Q3_leads_errors.csv"
    assert report.error_count == 2
    assert report.content.splitlines()[1:] == [
        "1,Bob,b@acme.io,,,company is required",
        "4,Ada,a@acme.io,,,email must be unique",
    ]


def test_build_error_report_unknown_job(job_store):
    assert build_error_report(job_store, "00000000-0000-0000-0000-000000000000") is None
