# medley/core/exceptions.py
"""
Core exceptions for the Medley consultation engine.

This module defines all custom exceptions used across the engine,
providing consistent error handling and debugging information.
"""

from typing import Optional, Dict, Any


class MedleyBaseException(Exception):
    """Base exception for all Medley errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class FlowError(MedleyBaseException):
    """Errors in consultation flow processing and state transitions"""

    def __init__(
        self,
        message: str,
        current_question: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize flow error.

        Args:
            message: Error description
            current_question: Question id where the error occurred
            details: Additional error context
        """
        super().__init__(message, details)
        self.current_question = current_question

        if current_question:
            self.details['current_question'] = current_question

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.current_question:
            return f"{base_msg} [Question: {self.current_question}]"
        return base_msg


class ConsultBusyError(FlowError):
    """Raised when a message is sent while a turn is still streaming"""


class ValidationError(MedleyBaseException):
    """Errors in input validation and data integrity"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.field = field
        self.value = value

        if field:
            self.details['field'] = field
        if value is not None:
            self.details['value'] = str(value)


class ServiceError(MedleyBaseException):
    """Errors in external service interactions"""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None
    ):
        """
        Initialize service error.

        Args:
            message: Error description
            service_name: Name of the failing service
            operation: Operation that failed
            details: Additional service context
            original_error: Underlying exception, if any
        """
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation
        self.original_error = original_error

        if service_name:
            self.details['service'] = service_name
        if operation:
            self.details['operation'] = operation
        if original_error is not None:
            self.details['error_type'] = type(original_error).__name__


class GPTServiceError(ServiceError):
    """Specific errors for GPT service interactions"""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None
    ):
        super().__init__(
            message,
            service_name="GPT",
            operation=operation,
            details=details,
            original_error=original_error
        )
        self.model = model

        if model:
            self.details['model'] = model


class ConfigurationError(MedleyBaseException):
    """Errors in system configuration and initialization"""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.component = component
        self.config_key = config_key

        if component:
            self.details['component'] = component
        if config_key:
            self.details['config_key'] = config_key


class PromptError(MedleyBaseException):
    """Errors in prompt management and template processing"""

    def __init__(
        self,
        message: str,
        prompt_type: Optional[str] = None,
        template_vars: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.prompt_type = prompt_type
        self.template_vars = template_vars or {}

        if prompt_type:
            self.details['prompt_type'] = prompt_type
        if template_vars:
            self.details['template_vars'] = template_vars


class SchemaError(MedleyBaseException):
    """Errors while loading or decoding the question schema"""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.source = source

        if source:
            self.details['source'] = source


class SessionError(MedleyBaseException):
    """Errors in session management"""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.session_id = session_id

        if session_id:
            self.details['session_id'] = session_id


# Convenience functions for creating common errors

def session_error(message: str, session_id: str) -> SessionError:
    return SessionError(message, session_id=session_id)
