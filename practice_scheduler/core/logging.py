import logging
import sys
import structlog
from pythonjsonlogger import jsonlogger


def setup_logging(debug: bool = False, json_logs: bool = True):
    """Structured logging: structlog for services, JSON lines for everything on the root logger"""

    # JSON formatter for production
    json_formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Setup root logger once; repeated app startups must not stack handlers
    logger = logging.getLogger()
    if not any(getattr(h, "_practice_scheduler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(json_formatter)
        handler._practice_scheduler = True
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    return structlog.get_logger()
