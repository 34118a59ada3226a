import enum
import json
import logging
import time

EXTRA_KEYS = ("request_id", "job_id", "task", "status", "event")

def _plain(value):
    # JobStatus / TaskName show up in extras; log their wire value
    if isinstance(value, enum.Enum):
        return value.value
    return value

class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying the job/request extras when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (k, _plain(getattr(record, k)))
            for k in EXTRA_KEYS
            if getattr(record, k, None) is not None
        )
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)

def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
