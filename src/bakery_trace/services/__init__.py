"""Services package - business logic layer for Bakery Trace.

Architecture:
- Services: Stateless functions organized by domain (receiving, batches,
  production runs, traces)
- Store: EntityStore wraps a session; tracers and the resolver only read
  through it
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy

Service Modules:
- catalog_service: Ingredient types and products
- receiving_service: Goods-in and ingredient lots
- active_lot_service: Daily active-lot log and resolution
- batch_service: Dough and filling batches
- production_run_service: Finished-goods production runs
- trace_service: Backward genealogy and forward recall traces
- report_service: Trace formatting, daily report and CSV export
- audit_service: Audit trail

Infrastructure:
- database: Session management and database utilities
- entity_store: Ordered read/insert access to the genealogy tables
- genealogy_index: Adjacency mappings over the link tables
- exceptions: Custom exception classes for service layer errors
- logging_utils: Structured operation logging
"""

from . import (
    database,
    audit_service,
    catalog_service,
    receiving_service,
    active_lot_service,
    batch_service,
    production_run_service,
    trace_service,
    report_service,
)

from .active_lot_service import resolve_active_lot, set_active_lot
from .entity_store import EntityStore
from .exceptions import ServiceError
from .genealogy_index import GenealogyIndex
from .trace_service import trace_backward, trace_forward, trace_lot

__all__ = [
    "database",
    "audit_service",
    "catalog_service",
    "receiving_service",
    "active_lot_service",
    "batch_service",
    "production_run_service",
    "trace_service",
    "report_service",
    "EntityStore",
    "GenealogyIndex",
    "ServiceError",
    "resolve_active_lot",
    "set_active_lot",
    "trace_backward",
    "trace_forward",
    "trace_lot",
]
