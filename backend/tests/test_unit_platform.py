"""Platform unit tests: settings-derived policy, JSON logging, client IP."""
import json
import logging

from starlette.requests import Request

from proctor.platform.config import Settings
from proctor.platform.logging import ContextFilter, JsonFormatter
from proctor.platform.middleware import _rate_limit_key, get_client_ip
from proctor.platform.request_context import bind_session_id, reset_session_id


def _record(message="hello"):
    return logging.LogRecord("proctor.test", logging.INFO, __file__, 1, message, None, None)


class TestSettings:
    def test_detection_policy_defaults(self):
        policy = Settings().detection_policy
        assert policy.no_face_sustain(False) == 10.0
        assert policy.no_face_sustain(True) == 8.0
        assert policy.focus_lost_sustain(False) == 5.0
        assert policy.focus_lost_sustain(True) == 4.0
        assert policy.object_class_categories["cell phone"] == "device_detected"
        assert policy.object_class_categories["clipboard"] == "materials_detected"

    def test_object_classes_normalized(self):
        custom = Settings(PROHIBITED_OBJECT_CLASSES_JSON='{" Smart Watch ": "device_detected"}')
        assert custom.object_class_categories == {"smart watch": "device_detected"}

    def test_production_flag(self):
        assert Settings(DEPLOYMENT_ENV=" Production ").is_production is True
        assert Settings(DEPLOYMENT_ENV="development").is_production is False


class TestJsonLogging:
    def test_session_id_from_context(self):
        token = bind_session_id("sess-42")
        try:
            record = _record()
            ContextFilter().filter(record)
        finally:
            reset_session_id(token)
        payload = json.loads(JsonFormatter().format(record))
        assert payload["session_id"] == "sess-42"
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"

    def test_no_context_fields_when_unbound(self):
        record = _record()
        ContextFilter().filter(record)
        payload = json.loads(JsonFormatter().format(record))
        assert "session_id" not in payload


class TestMiddlewareHelpers:
    def _request(self, headers=None, client=("10.0.0.5", 1234)):
        scope = {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "client": client,
        }
        return Request(scope)

    def test_client_ip_prefers_forwarded_for(self):
        request = self._request({"X-Forwarded-For": "198.51.100.7, 10.0.0.1"})
        assert get_client_ip(request) == "198.51.100.7"

    def test_client_ip_falls_back_to_peer(self):
        assert get_client_ip(self._request()) == "10.0.0.5"

    def test_rate_limit_keys(self):
        assert _rate_limit_key("1.2.3.4", "POST", "/api/v1/sessions/abc/signals") == "signals:1.2.3.4"
        assert _rate_limit_key("1.2.3.4", "POST", "/api/v1/sessions/abc/start") == "lifecycle:1.2.3.4"
        assert _rate_limit_key("1.2.3.4", "GET", "/api/v1/sessions/abc/events") == ""
        assert _rate_limit_key("1.2.3.4", "POST", "/api/v1/reports/abc") == ""
