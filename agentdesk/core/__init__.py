"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from agentdesk.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    InvalidInputException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    VectorStoreException,
    RetrievalDegradedException,
    ClassificationFailedException,
    InvalidClassificationException,
    GenerationFailedException,
    RequestProcessingFailedException,
    PersistenceDegradedException,
    TicketPersistenceFailedException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "InvalidInputException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "VectorStoreException",
    "RetrievalDegradedException",
    "ClassificationFailedException",
    "InvalidClassificationException",
    "GenerationFailedException",
    "RequestProcessingFailedException",
    "PersistenceDegradedException",
    "TicketPersistenceFailedException",
]
