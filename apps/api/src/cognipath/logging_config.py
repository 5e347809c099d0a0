import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "botocore", "boto3", "pypdf")


def configure_logging(level: str = "INFO") -> None:
    """Route all records to stdout with ISO-ish timestamps.

    Existing root handlers are removed first so uvicorn reloads and repeated
    test app startups do not duplicate output.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
