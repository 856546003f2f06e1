"""
Error taxonomy for the training asset core.

The boundary layer maps these to client-facing codes:
- NotFoundError: missing material, question, subcomponent or container
- TypeMismatchError / CircularReferenceError: forbidden variant change or containment cycle
- ValidationFailure: structurally invalid payload (quiz rules, unknown kinds)
- ConflictError: duplicate relationship
- TransientStoreError: persistence failure, message never carries storage detail
"""

from __future__ import annotations


class TrainingAssetError(Exception):
    """Base class for all domain errors."""
    pass


class NotFoundError(TrainingAssetError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class TypeMismatchError(TrainingAssetError):
    """Raised when an update would change a material's variant or identity."""
    pass


class CircularReferenceError(TypeMismatchError):
    """Raised when a containment edge would make a material contain itself."""

    def __init__(self, parent_id: int, child_id: int):
        self.parent_id = parent_id
        self.child_id = child_id
        super().__init__(
            f"Assigning material {child_id} to {parent_id} would create a circular reference"
        )


class ValidationFailure(TrainingAssetError):
    """Raised when a payload violates structural rules."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or [message]
        super().__init__(message)


class ConflictError(TrainingAssetError):
    """Raised when a relationship already exists."""
    pass


class TransientStoreError(TrainingAssetError):
    """Raised when the underlying store fails; the original error is chained."""

    def __init__(self, operation: str = "database operation"):
        self.operation = operation
        super().__init__(f"Persistent store failure during {operation}")
