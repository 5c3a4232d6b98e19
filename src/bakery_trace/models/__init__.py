"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import BatchType, StorageCondition, TraceQueryKind
from .ingredient_type import IngredientType
from .receiving_report import ReceivingReport
from .ingredient_lot import IngredientLot
from .daily_active_log import DailyActiveLogEntry
from .intermediate_batch import IntermediateBatch, BatchIngredientLink
from .product import Product
from .production_run import ProductionRun, ProductionRunOutput, RunBatchLink
from .audit_event import AuditEvent

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "BatchType",
    "StorageCondition",
    "TraceQueryKind",
    # Reference data
    "IngredientType",
    "Product",
    # Receiving
    "ReceivingReport",
    "IngredientLot",
    "DailyActiveLogEntry",
    # Genealogy
    "IntermediateBatch",
    "BatchIngredientLink",
    "ProductionRun",
    "ProductionRunOutput",
    "RunBatchLink",
    # Audit
    "AuditEvent",
]
