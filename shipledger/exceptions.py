"""
Ledger Exceptions

Errors raised by the ledger services when an integrity rule or lifecycle
rule is broken. Every error carries a type tag and a details dict so the
API layer can serialize it without knowing the concrete class.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorType(str, Enum):
    """Error type enumeration for discriminated handling."""

    CONSTRAINT_VIOLATION = "constraint_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"


class LedgerError(Exception):
    """Base class for all ledger errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class ConstraintViolation(LedgerError):
    """Raised on unique, format, enumerated-value or CHECK violations."""

    def __init__(self, field_name: str, value: Any, message: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"Constraint violated for '{field_name}': {message}",
            ErrorType.CONSTRAINT_VIOLATION,
            {"field": field_name, "value": str(value) if value is not None else None},
        )


class MultipleConstraintViolations(ConstraintViolation):
    """Raised when a single write breaks more than one rule."""

    def __init__(self, violations: List[ConstraintViolation]) -> None:
        self.violations = violations
        fields = ", ".join(v.field_name for v in violations)
        LedgerError.__init__(
            self,
            f"{len(violations)} constraints violated ({fields})",
            ErrorType.CONSTRAINT_VIOLATION,
            {"violations": [v.to_dict() for v in violations]},
        )
        self.field_name = violations[0].field_name
        self.value = violations[0].value


class ForeignKeyViolation(LedgerError):
    """Raised when a write references a row that does not exist."""

    def __init__(self, field_name: str, value: Any, target: str, message: Optional[str] = None) -> None:
        self.field_name = field_name
        self.value = value
        self.target = target
        super().__init__(
            message or f"'{field_name}' references missing {target} {value}",
            ErrorType.FOREIGN_KEY_VIOLATION,
            {"field": field_name, "value": value, "target": target},
        )


class NotFound(LedgerError):
    """Raised when a get/update/delete target is missing."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            ErrorType.NOT_FOUND,
            {"entity": entity, "id": entity_id},
        )


class InvalidTransition(LedgerError):
    """Raised when an operation would break a shipment or invoice lifecycle rule."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, ErrorType.INVALID_TRANSITION, details)
