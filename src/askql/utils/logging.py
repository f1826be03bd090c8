import json
import structlog
import logging
import inspect
from typing import Any
from askql.config import get_settings

_logging_configured = False


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Add a short 'module' field: "workflow.stages" for askql.workflow.stages, full name otherwise."""
    logger_name = event_dict.get("logger", "unknown")
    if logger_name.startswith("askql."):
        event_dict["module"] = ".".join(logger_name.split(".")[-2:])
    else:
        event_dict["module"] = logger_name
    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def configure_logging() -> None:
    """
    Route structlog through stdlib logging and render every record as
    indented JSON. Safe to call more than once; only the first call has
    an effect.

    Fields bound with utils.tracing.trace_context (trace_id, session_id)
    are merged into every record logged inside the block.
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.app.log_level),
        handlers=[logging.StreamHandler()],
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_module_info,
            _pretty_json_renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Stage completed", stage="sql_execution", row_count=42)
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """Logger named after the calling module ('unknown' when the frame is not available)."""
    frame = inspect.currentframe()
    try:
        caller = frame.f_back if frame is not None else None
        module_name = caller.f_globals.get("__name__", "unknown") if caller is not None else "unknown"
    finally:
        del frame
    return get_logger(module_name)
