import logging
import re
import sys

# Domains tag every record so quota, subscription, progress, access and gateway logs can be filtered apart.
DOMAIN_QUOTA = "quota"
DOMAIN_SUBSCRIPTIONS = "subscriptions"
DOMAIN_PROGRESS = "progress"
DOMAIN_ACCESS = "access"
DOMAIN_GATEWAY = "gateway"

LOG_FORMAT = "%(asctime)s | %(levelname)s | [%(domain)s] | %(name)s | %(message)s"


def get_domain_logger(name: str, domain: str) -> logging.LoggerAdapter:
    """Logger that stamps `domain` on every record it emits."""
    return logging.LoggerAdapter(logging.getLogger(name), {"domain": domain})


class DomainDefaultFilter(logging.Filter):
    """Records from third-party loggers carry no domain; give them one so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "domain"):
            record.domain = "app"  # type: ignore[attr-defined]
        return True


_SECRET_PATTERNS = [
    re.compile(r"(?i)(x-api-key\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(api[_-]?key\s*[=:]\s*)([^\s,;]+)"),
    re.compile(r"(?i)(authorization\s*[=:]\s*bearer\s+)([^\s,;]+)"),
    re.compile(r"(?i)(password\s*[=:]\s*)([^\s,;]+)"),
    # database urls: keep scheme and user, hide the password
    re.compile(r"(?i)(\w+(?:\+\w+)?://[^:/\s]+:)([^@\s]+)(?=@)"),
]


def redact_secrets(message: str) -> str:
    text = str(message or "")
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1[REDACTED]", text)
    return text


class SecretRedactionFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_secrets(record.getMessage())
        record.args = ()
        return True


class SuppressHealthCheckFilter(logging.Filter):
    """Drop uvicorn access lines for successful GET /health probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not ("/health" in message and " 200" in message)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(DomainDefaultFilter())
    handler.addFilter(SecretRedactionFilter())

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in list(root.handlers):
        if getattr(existing, "_entitlements_handler", False):
            root.removeHandler(existing)
    handler._entitlements_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # Request URLs from http clients are noise at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").addFilter(SuppressHealthCheckFilter())
