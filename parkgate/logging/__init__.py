"""
Logging

Module de logging structuré avec:
- Format JSON, une ligne par entrée
- Champs obligatoires: timestamp, level, correlation_id, message
- Timestamp ISO 8601 UTC
- Masquage des données sensibles
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import SensitiveMasker
from .structured_logger import (
    StructuredLogger,
    MissingRequiredFieldError,
    stderr_handler,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "stderr_handler",
    # Exceptions
    "MissingRequiredFieldError",
]
