"""
Enumerations for genealogy tracking.

This module contains enums used across production-related models and
the trace services:
- BatchType: Kind of intermediate batch (dough or filling)
- StorageCondition: How an ingredient lot is stored
- TraceQueryKind: Origin of a forward (recall) trace query
"""

from enum import Enum


class BatchType(str, Enum):
    """
    Intermediate batch type.

    Values:
        DOUGH: Dough batch feeding production runs
        FILLING: Filling batch feeding production runs
    """

    DOUGH = "Dough"
    FILLING = "Filling"


class StorageCondition(str, Enum):
    """Storage condition recorded on ingredient types and lots."""

    AMBIENT = "Ambient"
    CHILLED = "Chilled"
    FROZEN = "Frozen"


class TraceQueryKind(str, Enum):
    """
    Where a forward (recall) trace starts.

    Values:
        INGREDIENT_LOT_BY_CODE: Match ingredient lots by supplier batch code
        INTERMEDIATE_BATCH_BY_CODE: Match dough/filling batches by batch code
        PRODUCT_BATCH_CODE_DIRECT: Match production runs by product batch code
    """

    INGREDIENT_LOT_BY_CODE = "ingredient_lot_by_code"
    INTERMEDIATE_BATCH_BY_CODE = "intermediate_batch_by_code"
    PRODUCT_BATCH_CODE_DIRECT = "product_batch_code_direct"
