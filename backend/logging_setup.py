import logging
import sys


class _ThirdPartyFilter(logging.Filter):
    """Keep our own modules at the configured level, third-party loggers at WARNING+."""

    OWN_PREFIXES = (
        "main", "database", "store", "remote_api", "scheduler",
        "classifier", "device", "uvicorn",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "root" or record.name.startswith(self.OWN_PREFIXES):
            return True
        return record.levelno >= logging.WARNING


def setup_logging(level: str = "INFO") -> None:
    """
    Install a single stderr handler on the root logger.

    Safe to call more than once: existing handlers are replaced, not stacked.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    handler.addFilter(_ThirdPartyFilter())
    root.addHandler(handler)

    logging.captureWarnings(True)
