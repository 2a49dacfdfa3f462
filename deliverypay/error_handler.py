"""Error handling helpers for the delivery API."""
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception while serving request: %s", exc, exc_info=True)
        return {
            "message": "An internal error occurred while processing your request. Please try again later.",
            "fallback": True,
            "metadata": {"error": str(exc), "error_type": type(exc).__name__, "context": context or {}},
        }
