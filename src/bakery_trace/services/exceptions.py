"""Service layer exception classes for Bakery Trace.

Exception Hierarchy:
    ServiceError (base)
    ├── IngredientTypeNotFound
    ├── IngredientLotNotFound
    ├── ReceivingReportNotFound
    ├── IntermediateBatchNotFound
    ├── ProductionRunNotFound
    ├── ProductNotFound
    ├── IngredientUnavailableError
    ├── ValidationError
    └── InvariantViolation
        ├── EmptyBatchError
        ├── EmptyProductionRunError
        └── BatchTypeMismatchError

A missing active lot and an empty trace are NOT exceptions: the resolver
returns None and the tracers return empty reports.
"""

from typing import Iterable


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class IngredientTypeNotFound(ServiceError):
    """Raised when an ingredient type cannot be found by ID."""

    def __init__(self, ingredient_type_id: int):
        self.ingredient_type_id = ingredient_type_id
        super().__init__(f"Ingredient type with ID {ingredient_type_id} not found")


class IngredientLotNotFound(ServiceError):
    """Raised when an ingredient lot cannot be found by ID.

    Example:
        >>> raise IngredientLotNotFound(123)
        IngredientLotNotFound: Ingredient lot with ID 123 not found
    """

    def __init__(self, lot_id: int):
        self.lot_id = lot_id
        super().__init__(f"Ingredient lot with ID {lot_id} not found")


class ReceivingReportNotFound(ServiceError):
    """Raised when a receiving report cannot be found by ID."""

    def __init__(self, report_id: int):
        self.report_id = report_id
        super().__init__(f"Receiving report with ID {report_id} not found")


class IntermediateBatchNotFound(ServiceError):
    """Raised when a dough or filling batch cannot be found by ID."""

    def __init__(self, batch_id: int):
        self.batch_id = batch_id
        super().__init__(f"Intermediate batch with ID {batch_id} not found")


class ProductionRunNotFound(ServiceError):
    """Raised when a production run cannot be found by ID."""

    def __init__(self, production_run_id: int):
        self.production_run_id = production_run_id
        super().__init__(f"Production run with ID {production_run_id} not found")


class ProductNotFound(ServiceError):
    """Raised when a catalog product cannot be found by ID."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class IngredientUnavailableError(ServiceError):
    """Raised when a required ingredient has no lot to draw from.

    Args:
        ingredient_type_ids: Required ingredient types with no active lot
    """

    def __init__(self, ingredient_type_ids: Iterable[int]):
        self.ingredient_type_ids = list(ingredient_type_ids)
        ids = ", ".join(str(i) for i in self.ingredient_type_ids)
        super().__init__(f"No active lot available for ingredient type(s): {ids}")


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class InvariantViolation(ServiceError):
    """Raised when a write would produce a corrupt genealogy."""

    pass


class EmptyBatchError(InvariantViolation):
    """Raised when an intermediate batch is created with no ingredient lots."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Batch '{code}' must consume at least one ingredient lot")


class EmptyProductionRunError(InvariantViolation):
    """Raised when a production run is created with no dough or filling batches."""

    def __init__(self, product_batch_code: str):
        self.product_batch_code = product_batch_code
        super().__init__(
            f"Production run '{product_batch_code}' must consume at least one "
            f"dough or filling batch"
        )


class BatchTypeMismatchError(InvariantViolation):
    """Raised when a batch is linked to a run under the wrong type."""

    def __init__(self, batch_id: int, expected: str, actual: str):
        self.batch_id = batch_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Batch {batch_id} is a {actual} batch and cannot be used as {expected}"
        )
