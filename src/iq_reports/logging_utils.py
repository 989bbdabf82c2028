"""Logging setup for CLI runs."""

import logging

LOG_FORMAT = "%(levelname)s: %(message)s"
REDACTED = "***REDACTED***"


class SecretRedactionFilter(logging.Filter):
    """Logging filter that replaces a credential with ``***REDACTED***``."""

    def __init__(self, secret: str) -> None:
        super().__init__()
        self._secret = secret

    def _redact(self, value: object) -> object:
        if self._secret and self._secret in str(value):
            return str(value).replace(self._secret, REDACTED)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secret and self._secret in str(record.msg):
            record.msg = str(record.msg).replace(self._secret, REDACTED)
        if record.args:
            args = record.args
            if isinstance(args, tuple):
                record.args = tuple(self._redact(a) for a in args)
            elif isinstance(args, dict):
                record.args = {k: self._redact(v) for k, v in args.items()}
        return True


def setup_logging(verbose: bool = False, secret: str = "") -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # Suppress httpx HTTP request logging unless verbose
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    if secret:
        for handler in logging.getLogger().handlers:
            handler.addFilter(SecretRedactionFilter(secret))
