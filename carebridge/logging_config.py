import logging
import re

from pythonjsonlogger import jsonlogger

from .config import Settings


class PIIRedactingFilter(logging.Filter):
    # Kenyan mobile numbers in any of the stored or provider formats
    _phone_re = re.compile(r"(?<!\w)\+?(?:254|0)?\s?7\d{2}\s?\d{3}\s?\d{3}\b")
    _pin_re = re.compile(r"\bPIN:\s*\d{4,6}\b", re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except Exception:
            return True
        msg = self._phone_re.sub("[REDACTED_PHONE]", msg)
        msg = self._pin_re.sub("PIN: [REDACTED]", msg)
        record.msg = msg
        record.args = ()
        return True


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler()

    if settings.LOG_JSON:
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s"
        )

    handler.setFormatter(formatter)
    handler.addFilter(PIIRedactingFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # Reduce noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
