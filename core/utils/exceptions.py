# Structured exception hierarchy for the trading gateway

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class GatewayException(Exception):
    """Base exception for all gateway specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class TransientError(GatewayException):
    """Errors that may succeed if the caller tries again later"""
    pass


class PermanentError(GatewayException):
    """Errors that will fail again with the same input"""
    pass


# Broker Integration Errors
class BrokerError(TransientError):
    """Base class for broker integration errors"""

    def __init__(self, message: str, broker: str = "zerodha", **kwargs):
        super().__init__(message, **kwargs)
        self.broker = broker


class BrokerNotInitializedError(BrokerError):
    """Broker client could not be constructed (missing API key or SDK)"""
    pass


class UnknownToolError(PermanentError):
    """Tool name not present in the registry"""

    def __init__(self, tool_name: str, **kwargs):
        super().__init__(f"Unknown tool: {tool_name}", **kwargs)
        self.tool_name = tool_name


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error is worth retrying by the caller

    Returns:
        True if error is transient, False otherwise
    """
    return isinstance(error, TransientError)


def create_error_context(error: Exception, operation: str,
                        additional_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Create structured error context for logging

    Args:
        error: The exception that occurred
        operation: The operation that failed
        additional_context: Additional context information

    Returns:
        Structured error context dictionary
    """
    context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "operation": operation,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "retryable": is_retryable_error(error)
    }

    if isinstance(error, GatewayException):
        if error.details:
            context["error_details"] = error.details

        if isinstance(error, BrokerError):
            context["broker"] = error.broker

    # Merge additional context
    if additional_context:
        context.update(additional_context)

    return context
