import structlog
import logging
import sys
from typing import Dict, Any, Optional, TextIO, TYPE_CHECKING
import os

if TYPE_CHECKING:
    from jack.infrastructure.config.settings import Settings


# Keys the orchestrator binds while a request is in flight
REQUEST_CONTEXT_KEYS = ("client_id", "task_id")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "jack",
    stream: Optional[TextIO] = None
) -> None:
    """Route structlog through stdlib logging.

    ``json`` emits one object per line; any other format uses the console
    renderer for local development.
    """

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=stream or sys.stdout, level=level)

    # Keep asyncio debug chatter out of pipeline logs
    logging.getLogger("asyncio").setLevel(max(level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_request_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development")
    )


def setup_logging_from_settings(settings: "Settings") -> None:
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        service_name=settings.service_name
    )


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy service and request identifiers from contextvars into the event"""

    context = structlog.contextvars.get_contextvars()

    for key in ("service", "environment") + REQUEST_CONTEXT_KEYS:
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class PipelineLogger:
    """Specialized logger for intent pipeline events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_intent_execution(
        self,
        intent_id: str,
        action: str,
        success: bool,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None
    ):
        """Log the outcome of one plugin invocation"""

        log = self.logger.info if success else self.logger.warning
        log(
            "intent_execution",
            intent_id=intent_id,
            action=action,
            success=success,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            error=error
        )

    def log_task_transition(
        self,
        client_id: str,
        task_id: str,
        from_state: str,
        to_state: str,
        reason: Optional[str] = None
    ):
        self.logger.info(
            "task_transition",
            client_id=client_id,
            task_id=task_id,
            from_state=from_state,
            to_state=to_state,
            reason=reason
        )

    def log_context_update(
        self,
        client_id: Optional[str],
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Short-term and session writes are frequent, so they log at debug"""

        self.logger.debug(
            "context_update",
            client_id=client_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )


pipeline_logger = PipelineLogger("jack.pipeline")
