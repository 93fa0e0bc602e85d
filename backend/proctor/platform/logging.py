import logging
import sys
import json
from datetime import datetime, timezone
from ..platform.config import settings
from ..platform.request_context import get_request_id, get_session_id


class ContextFilter(logging.Filter):
    """Stamp request and proctoring session ids onto every record.

    Debounce timers fire on their own threads, outside any request, so the
    session id is often the only correlation a record carries.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id()
        if not getattr(record, "session_id", None):
            record.session_id = get_session_id()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "session_id"):
            value = getattr(record, key, None)
            if value:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def _level(name: str | None, default: int = logging.INFO) -> int:
    return getattr(logging, (name or "").upper(), default)


def setup_logging():
    """Configure JSON logging on stdout for the API process."""
    log_level = _level(settings.LOG_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Per-sample debounce decisions log at DEBUG; raise this to trace them
    logging.getLogger("proctor.components.detection").setLevel(_level(settings.DETECTION_LOG_LEVEL, log_level))

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger
