"""
ASFF Mapper Exceptions Module

Custom exception classes for the ASFF to HDF mapper.
Centralized exception definitions for consistent error handling.
"""

from typing import Optional

__all__ = [
    "AsffMapperError",
    "ConfigError",
    "FindingTransformError",
    "InvalidInputError",
    "MappingTableError",
    "MissingFieldError",
    "SupportingDocumentError",
]


class AsffMapperError(Exception):
    """Base exception for all mapper-related errors"""
    pass


class InvalidInputError(AsffMapperError):
    """Raised when the findings envelope cannot be interpreted"""
    pass


class SupportingDocumentError(AsffMapperError):
    """Raised when a standards catalog document cannot be loaded"""

    def __init__(self, producer: str, index: int, reason: str):
        self.producer = producer
        self.index = index
        self.reason = reason
        super().__init__(
            f"Invalid supporting docs for {producer}: document {index}: {reason}"
        )


class MappingTableError(AsffMapperError):
    """Raised when the packaged rule-to-policy table is missing or malformed"""
    pass


class MissingFieldError(AsffMapperError):
    """Raised when a finding lacks a path the conversion needs"""

    def __init__(self, path: str, context: str = ""):
        self.path = path
        message = f"Missing required field '{path}'"
        if context:
            message += f" ({context})"
        super().__init__(message)


class FindingTransformError(AsffMapperError):
    """Raised when a single source finding fails field transformation"""

    def __init__(
        self,
        index: int,
        cause: Exception,
        product_arn: Optional[str] = None,
        generator_id: Optional[str] = None,
    ):
        self.index = index
        self.cause = cause
        self.product_arn = product_arn
        self.generator_id = generator_id
        super().__init__(
            f"Finding #{index} (ProductArn={product_arn!r}, "
            f"GeneratorId={generator_id!r}) could not be converted: {cause}"
        )


class ConfigError(AsffMapperError):
    """Raised when mapper configuration is unreadable or invalid"""
    pass
