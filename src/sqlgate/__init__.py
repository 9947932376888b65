"""sqlgate: operation-specific safety checks for raw SQL before it reaches a database."""

from sqlgate.diagnostics import ValidationResult
from sqlgate.policy import OperationClass, ValidationPolicy, get_policy, validate

__all__ = [
    "OperationClass",
    "ValidationPolicy",
    "ValidationResult",
    "get_policy",
    "validate",
]
