"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Only classification and primary
generation failures abort a chat request; the degraded-mode exceptions are
caught at their call sites and logged.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class InvalidInputException(ValidationException):
    """A required request field is missing or empty."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)


class RetrievalDegradedException(ExternalServiceException):
    """Context retrieval failed; callers continue without context."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Retrieval Service", message, details)


# ========== Chat pipeline ==========

class ClassificationFailedException(DomainException):
    """The intent classifier could not produce a category."""


class InvalidClassificationException(ClassificationFailedException):
    """The classifier output was not valid JSON or named an unknown category."""

    def __init__(self, message: str, raw_output: Optional[str] = None):
        self.raw_output = raw_output
        super().__init__(message, {"raw_output": raw_output} if raw_output is not None else None)


class GenerationFailedException(DomainException):
    """A response generator failed to produce a draft reply."""

    def __init__(self, category: str, message: str, details: Optional[dict] = None):
        self.category = category
        super().__init__(f"{category} generation failed: {message}", details)


class RequestProcessingFailedException(ApplicationException):
    """A chat request was aborted by a fatal pipeline failure."""

    def __init__(self, message: str = "The request could not be processed.", details: Optional[dict] = None):
        super().__init__(message, details)


# ========== Persistence ==========

class PersistenceDegradedException(RepositoryException):
    """Conversation history could not be read or written."""


class TicketPersistenceFailedException(RepositoryException):
    """A ticket could not be stored."""
