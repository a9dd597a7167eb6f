"""HTTP tests for uploads, job tracking, the SSE stream and customers."""

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from conftest import csv_text

UNKNOWN_JOB = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _upload(client, content: str, filename: str = "customers.csv"):
    return client.post(
        "/api/uploads/",
        files={"file": (filename, content.encode("utf-8"), "text/csv")},
    )


def _wait_until_finished(client, job_id: str, timeout: float = 10.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/api/uploads/{job_id}/status").json()
        if body["status"] in ("completed", "failed"):
            return body
        if time.monotonic() > deadline:
            pytest.fail(f"job {job_id} still {body['status']} after {timeout}s")
        time.sleep(0.02)


def test_upload_is_accepted_then_processed(client, settings):
    response = _upload(
        client,
        csv_text("Ada,ada@acme.io,555,Acme", "Bob,not-an-email,,Acme", ",cy@acme.io,,Acme"),
    )
    assert response.status_code == 202
    accepted = response.json()
    assert accepted["status"] == "pending"
    job_id = accepted["jobId"]

    final = _wait_until_finished(client, job_id)
    assert final["status"] == "completed"
    assert final["totalRows"] == final["processedRows"] == 3
    assert final["successCount"] == 1
    assert final["failedCount"] == 2
    assert final["errorCount"] == 2

    detail = client.get(f"/api/jobs/{job_id}").json()
    assert detail["filename"] == "customers.csv"
    assert [(e["rowNumber"], e["message"]) for e in detail["errors"]] == [
        (2, "invalid email"),
        (3, "name is required"),
    ]

    customers = client.get("/api/customers/", params={"jobId": job_id}).json()
    assert customers["total"] == 1
    assert customers["items"][0]["email"] == "ada@acme.io"
    assert customers["items"][0]["jobId"] == job_id

    jobs = client.get("/api/jobs/").json()
    assert [job["jobId"] for job in jobs] == [job_id]


def test_staged_file_is_removed_after_processing(client, settings):
    job_id = _upload(client, csv_text("Ada,ada@acme.io,,Acme")).json()["jobId"]
    _wait_until_finished(client, job_id)
    assert list(Path(settings.uploads_dir).iterdir()) == []


def test_error_report_download(client):
    job_id = _upload(
        client,
        csv_text("Ada,ada@acme.io,,Acme", 'Bob,"bad, email",,Acme'),
        filename="May leads.csv",
    ).json()["jobId"]
    _wait_until_finished(client, job_id)

    response = client.get(f"/api/jobs/{job_id}/error-report")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="May_leads_errors.csv"'
    assert response.text == (
        "rowNumber,name,email,phone,company,error\n"
        '2,Bob,"bad, email",,Acme,invalid email\n'
    )


def test_error_report_for_non_ascii_filename(client):
    job_id = _upload(
        client,
        csv_text("Ada,ada@acme.io,,Acme", ",nameless@acme.io,,Acme"),
        filename="客户.csv",
    ).json()["jobId"]
    _wait_until_finished(client, job_id)

    response = client.get(f"/api/jobs/{job_id}/error-report")

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="job_errors.csv"'
    assert response.text.splitlines()[1] == "2,,nameless@acme.io,,Acme,name is required"
    assert client.get(f"/api/jobs/{job_id}").json()["filename"] == "客户.csv"


def test_stream_of_finished_job_sends_only_done(client):
    job_id = _upload(client, csv_text("Ada,ada@acme.io,,Acme")).json()["jobId"]
    _wait_until_finished(client, job_id)

    response = client.get(f"/api/jobs/{job_id}/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache, no-transform"
    body = response.text
    assert body.startswith("retry: 2000\n\n")
    assert body.count("event: done") == 1
    assert "event: progress" not in body
    assert f'"jobId": "{job_id}"' in body


def test_failed_job_reports_fatal_error(client):
    job_id = _upload(client, "name,phone\nAda,555\n").json()["jobId"]
    final = _wait_until_finished(client, job_id)

    assert final["status"] == "failed"
    assert "Missing required column(s)" in final["lastError"]
    detail = client.get(f"/api/jobs/{job_id}").json()
    assert detail["errors"][-1]["rowNumber"] == 0


@pytest.mark.parametrize(
    "files, detail",
    [
        ({"attachment": ("customers.csv", b"name,email,company\n", "text/csv")}, "CSV file is required (field name: file)"),
        ({"file": ("customers.xlsx", b"name,email,company\n", "text/csv")}, "Only .csv files are allowed"),
    ],
)
def test_upload_rejects_bad_requests(client, files, detail):
    response = client.post("/api/uploads/", files=files)
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_upload_rejects_oversized_file(settings):
    small = settings.model_copy(update={"max_upload_bytes": 64})
    with TestClient(create_app(small)) as client:
        response = _upload(client, csv_text(*[f"User {n},u{n}@acme.io,,Acme" for n in range(10)]))
        assert response.status_code == 413
        assert client.get("/api/jobs/").json() == []


@pytest.mark.parametrize(
    "path",
    ["/api/jobs/{id}", "/api/jobs/{id}/error-report", "/api/jobs/{id}/stream", "/api/uploads/{id}/status"],
)
def test_job_lookups_validate_id(client, path):
    assert client.get(path.format(id="not-a-uuid")).status_code == 400
    response = client.get(path.format(id=UNKNOWN_JOB))
    assert response.status_code == 404
    assert response.json()["detail"] == "Job not found"


def test_list_jobs_rejects_unknown_status(client):
    assert client.get("/api/jobs/", params={"status": "archived"}).status_code == 400


def test_health_endpoints(client):
    assert client.get("/health/live").json()["status"] == "ok"

    ready = client.get("/health/ready")
    assert ready.status_code == 200
    checks = ready.json()["checks"]
    assert checks["database"]["status"] == "healthy"
    assert checks["redis"]["status"] == "disabled"
    assert checks["queue"]["status"] == "healthy"
