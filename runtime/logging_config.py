import logging
from typing import Optional

LOGGER_NAME = "solid_elasticity"
WARNINGS_LOGGER_NAME = "py.warnings"


def setup_logging(
    log_file: Optional[str] = None,
    *,
    quiet: bool = False,
    debug: bool = False,
    capture_warnings: bool = True,
) -> logging.Logger:
    """Configure and return the shared `solid_elasticity` logger.

    No file is written unless `log_file` is given; an existing file is
    overwritten. With `capture_warnings`, Python warnings (e.g. NumPy overflow
    inside the force evaluation) are routed to the `py.warnings` logger, which
    shares the handlers configured here.
    """
    logger = logging.getLogger(LOGGER_NAME)
    warnings_logger = logging.getLogger(WARNINGS_LOGGER_NAME)
    # Keep propagation enabled so pytest caplog still sees records when the
    # console handler is suppressed.
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        warnings_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as exc:
            print(f"[logging] Could not open log file '{log_file}': {exc}")

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if capture_warnings:
        for handler in logger.handlers:
            warnings_logger.addHandler(handler)
    logging.captureWarnings(capture_warnings)
    return logger
