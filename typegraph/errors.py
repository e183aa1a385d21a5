"""
Error types for typegraph.

This module defines all exception types raised by the compiler and store:
- TypeGraphError: Base exception
- MalformedDeclarationError: Declaration tree shape rejected in strict mode
- SchemaValidationError: Validator vetoed the transaction
- TransactionError: Store rejected the entity list
- SchemaSourceError: Schema file could not be read into a declaration tree

Invariants:
    - All errors inherit from TypeGraphError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any


class TypeGraphError(Exception):
    """Base exception for all typegraph errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TYPEGRAPH_ERROR"
        self.details = details or {}


class MalformedDeclarationError(TypeGraphError):
    """A declaration tree element has an unsupported shape.

    Only raised when compiling in strict mode. Lenient mode logs and
    skips the element instead.

    Raised when:
    - A vector sits where a type symbol is expected
    - A parameter list has no preceding field symbol
    - An element is neither a symbol nor a vector
    """

    def __init__(
        self,
        message: str,
        element: Any = None,
        position: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="MALFORMED_DECLARATION",
            details={"element": repr(element), "position": position},
        )
        self.element = element
        self.position = position


class SchemaValidationError(TypeGraphError):
    """The schema validator rejected the compiled entity list.

    Nothing has been handed to the store when this is raised.
    """

    def __init__(
        self,
        message: str,
        entity_count: int = 0,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_FAILED",
            details={"entity_count": entity_count},
        )
        self.entity_count = entity_count


class TransactionError(TypeGraphError):
    """The store could not apply a transaction.

    The transaction is rolled back before this is raised; nothing is
    committed.
    """

    def __init__(
        self,
        message: str,
        entity_id: int | None = None,
        attribute: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details={"entity_id": entity_id, "attribute": attribute},
        )
        self.entity_id = entity_id
        self.attribute = attribute


class SchemaSourceError(TypeGraphError):
    """A schema source file could not be loaded."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="SCHEMA_SOURCE_ERROR",
            details={"path": path},
        )
        self.path = path
