"""structlog setup shared by every host entry point."""

import structlog

_configured = False


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Console output when debugging, one JSON object per line otherwise."""
    global _configured
    if _configured and not force:
        return
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
    )
    _configured = True
