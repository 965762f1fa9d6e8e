import logging

_CHATTY_LIBRARY_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(log_level: str) -> None:
    """Configure process-wide logging for the relay service and the chat client."""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Per-request HTTP lines from the upstream SDK only at DEBUG.
    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in _CHATTY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
