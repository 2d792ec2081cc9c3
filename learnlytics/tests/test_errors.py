"""
Error envelope & settings tests
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from learnlytics.config.settings import Settings, get_bool_env, get_float_env
from learnlytics.errors import APIError, ErrorCode, register_exception_handlers
from learnlytics.exceptions import (
    EmptyScopeError,
    ExternalServiceError,
    ExternalTimeoutError,
    MalformedAnswerError,
    MalformedInsightError,
)


class TestDomainExceptions:

    def test_malformed_answer_message(self):
        exc = MalformedAnswerError("unknown question", record_index=3, question_id="q9")
        assert exc.message == "Malformed answer record 3 (question q9): unknown question"
        assert exc.status_code == 400

    def test_external_hierarchy(self):
        assert isinstance(ExternalTimeoutError(2.0), ExternalServiceError)
        assert isinstance(MalformedInsightError("bad"), ExternalServiceError)
        assert ExternalTimeoutError(2.0).message == "Insight service timeout after 2.0s"


class TestAPIError:

    def test_malformed_answer_envelope(self):
        error = APIError.from_exception(MalformedAnswerError("missing question_id", record_index=0))
        body = error.to_dict()

        assert error.status_code == 400
        assert body["success"] is False
        assert body["code"] == ErrorCode.MALFORMED_ANSWER
        assert body["details"]["reason"] == "missing question_id"

    def test_empty_scope_envelope(self):
        error = APIError.from_exception(EmptyScopeError("scope(course=c1)"))
        assert error.status_code == 404
        assert error.code == ErrorCode.EMPTY_SCOPE

    def test_external_envelope_has_no_details(self):
        body = APIError.from_exception(ExternalServiceError()).to_dict()
        assert body["code"] == ErrorCode.AI_SERVICE_ERROR
        assert "details" not in body


class TestExceptionHandlers:

    @pytest.fixture
    def client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/scope")
        async def scope():
            raise EmptyScopeError("scope(quiz=z9)")

        @app.get("/crash")
        async def crash():
            raise RuntimeError("boom")

        return TestClient(app, raise_server_exceptions=False)

    def test_only_domain_and_catch_all_handlers(self):
        app = FastAPI()
        register_exception_handlers(app)
        assert APIError not in app.exception_handlers
        assert Exception in app.exception_handlers

    def test_domain_error_envelope(self, client):
        response = client.get("/scope")
        assert response.status_code == 404
        assert response.json()["details"] == {"scope": "scope(quiz=z9)"}

    def test_unexpected_error_is_generic_500(self, client):
        response = client.get("/crash")
        body = response.json()

        assert response.status_code == 500
        assert body["code"] == ErrorCode.INTERNAL_ERROR
        assert "boom" not in body["message"]
        assert len(body["details"]["log_id"]) == 8


class TestSettings:

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("YES", True), ("on", True), ("enabled", True), ("1", True),
        ("false", False), ("0", False), ("nope", False),
    ])
    def test_bool_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("LEARNLYTICS_TEST_FLAG", raw)
        assert get_bool_env("LEARNLYTICS_TEST_FLAG") is expected

    def test_float_falls_back_on_bad_input(self, monkeypatch):
        monkeypatch.setenv("LEARNLYTICS_TEST_TIMEOUT", "soon")
        assert get_float_env("LEARNLYTICS_TEST_TIMEOUT", 15.0) == 15.0

    def test_external_insights_need_url(self, monkeypatch):
        monkeypatch.setattr(Settings, "FEATURE_EXTERNAL_INSIGHTS", True)
        monkeypatch.setattr(Settings, "INSIGHT_SERVICE_URL", "")
        assert Settings.external_insights_enabled() is False

        monkeypatch.setattr(Settings, "INSIGHT_SERVICE_URL", "http://insights.test")
        assert Settings.external_insights_enabled() is True

    def test_flags_listing(self):
        flags = Settings.get_all_flags()
        assert set(flags) == {"FEATURE_EXTERNAL_INSIGHTS", "FEATURE_DETAILED_SUMMARY"}

    def test_is_enabled_by_name(self, monkeypatch):
        monkeypatch.setattr(Settings, "FEATURE_DETAILED_SUMMARY", False)
        assert Settings.is_enabled("FEATURE_DETAILED_SUMMARY") is False
        assert Settings.is_enabled("FEATURE_UNKNOWN") is False
