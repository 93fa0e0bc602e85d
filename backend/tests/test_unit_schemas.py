"""Request schema unit tests."""
import pytest
from pydantic import ValidationError

from proctor.schemas.event import EventCreate
from proctor.schemas.session import SignalIngest


class TestSignalIngest:
    def test_camel_case_keys(self):
        data = SignalIngest.model_validate(
            {"faceCount": 2, "confidence": 0.7, "objectClasses": ["book"], "isRealAI": True}
        )
        assert data.face_count == 2
        assert data.object_classes == ["book"]
        assert data.reliable is True

    def test_snake_case_keys_and_defaults(self):
        data = SignalIngest.model_validate({"face_count": 0})
        assert data.confidence == 0.0
        assert data.object_classes == []
        assert data.reliable is False

    @pytest.mark.parametrize("payload", [{}, {"face_count": -1}, {"face_count": 1, "confidence": 1.5}])
    def test_invalid(self, payload):
        with pytest.raises(ValidationError):
            SignalIngest.model_validate(payload)


class TestEventCreate:
    def test_defaults_to_manual_source(self):
        assert EventCreate(category="no_face").source.value == "manual-test"
