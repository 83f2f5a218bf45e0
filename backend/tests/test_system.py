# Overview: Pytest coverage for the banner, health check, envelopes and write retries.

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ombor.services.concurrency import run_with_retry
from ombor.services.document_service import next_document_number


class TestSystemEndpoints:

    def test_banner(self, client, db_session):
        response = client.get("/")
        body = response.get_json()

        assert response.status_code == 200
        assert body["success"] is True
        assert body["message"] == "Ombor shop API"
        assert body["status"] == "running"
        assert body["endpoints"]["sales"] == "/api/sales"

    def test_api_test(self, client, db_session):
        body = client.get("/api/test").get_json()

        assert body["message"] == "Backend is running"

    def test_health(self, client, db_session, product):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["products"] == 1

    def test_unknown_endpoint_envelope(self, client, db_session):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        body = response.get_json()
        assert body["success"] is False
        assert body["message"] == "Endpoint not found"
        assert body["requested_url"] == "/api/nothing-here"
        assert "/api/debtors" in body["available_endpoints"]

    def test_method_not_allowed_is_enveloped(self, client, db_session):
        response = client.patch("/api/categories")

        assert response.status_code == 405
        assert response.get_json()["success"] is False

    def test_invalid_json_body(self, client, db_session):
        response = client.post("/api/categories", json=["not", "an", "object"])

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid JSON payload"

    def test_cors_for_allowed_origin(self, client, db_session):
        response = client.get("/api/test", headers={"Origin": "http://localhost:5173"})

        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_no_cors_for_other_origins(self, client, db_session):
        response = client.get("/api/test", headers={"Origin": "http://evil.example"})

        assert "Access-Control-Allow-Origin" not in response.headers


class TestWriteHelpers:

    def test_retry_on_stale_data(self, app, db_session):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) < 2:
                raise StaleDataError("version mismatch")
            return "done"

        assert run_with_retry(_op, attempts=3, backoff_base=0) == "done"
        assert len(calls) == 2

    def test_gives_up_after_attempts(self, app, db_session):
        def _op():
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(_op, attempts=2, backoff_base=0)

    def test_other_errors_are_not_retried(self, app, db_session):
        calls = []

        def _op():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            run_with_retry(_op, attempts=3, backoff_base=0)
        assert len(calls) == 1

    def test_document_numbers(self, app, db_session):
        first = next_document_number(document_type="TEST", prefix="T", pad=4)
        second = next_document_number(document_type="TEST", prefix="T", pad=4)
        db_session.commit()

        assert (first, second) == ("T-0001", "T-0002")
