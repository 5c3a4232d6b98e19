"""
ProductionRun, ProductionRunOutput and RunBatchLink models.

A production run is a finished-goods event: on a given day the bakery
turns one or more dough/filling batches into one or more products. The
product batch code printed on the packaging conventionally encodes the
production date (ddmmyy).

Outputs are stored one row per (product, quantity) pair; consumed batches
one row per batch, with an explicit batch_type column recording whether the
batch was used as a dough or a filling.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import BatchType


class ProductionRun(BaseModel):
    """
    ProductionRun model for finished-goods production events.

    Attributes:
        product_batch_code: Code printed on the product (e.g., "250101")
        run_at: When the run took place
        created_by: Lead operator
        notes: Optional notes

    Relationships:
        outputs: ProductionRunOutput rows (product, quantity)
        batch_links: RunBatchLink rows for consumed batches
    """

    __tablename__ = "production_runs"

    product_batch_code = Column(String(100), nullable=False)
    run_at = Column(DateTime, nullable=False)
    created_by = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    outputs = relationship(
        "ProductionRunOutput",
        back_populates="production_run",
        cascade="all, delete-orphan",
        order_by="ProductionRunOutput.id",
    )
    batch_links = relationship(
        "RunBatchLink",
        back_populates="production_run",
        cascade="all, delete-orphan",
        order_by="RunBatchLink.id",
    )

    __table_args__ = (
        Index("idx_production_run_code", "product_batch_code"),
        Index("idx_production_run_run_at", "run_at"),
    )

    @property
    def total_quantity(self) -> int:
        """Sum of all output quantities."""
        return sum(output.quantity for output in self.outputs)

    def batch_ids(self, batch_type: BatchType) -> list:
        """Ids of consumed batches of one type, in link order."""
        return [link.batch_id for link in self.batch_links if link.batch_type == batch_type.value]

    def __repr__(self) -> str:
        """String representation of production run."""
        return (
            f"ProductionRun(id={self.id}, product_batch_code='{self.product_batch_code}', "
            f"outputs={len(self.outputs)})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert production run to dictionary.

        Args:
            include_relationships: If True, include outputs and batch links

        Returns:
            Dictionary representation with dough/filling batch id lists
        """
        result = super().to_dict(include_relationships)
        result["dough_batch_ids"] = self.batch_ids(BatchType.DOUGH)
        result["filling_batch_ids"] = self.batch_ids(BatchType.FILLING)
        result["quantities"] = [
            {"product_id": output.product_id, "quantity": output.quantity}
            for output in self.outputs
        ]
        result["total_quantity"] = self.total_quantity
        return result


class ProductionRunOutput(BaseModel):
    """
    One (product, quantity) pair produced by a run.

    Attributes:
        production_run_id: Foreign key to parent ProductionRun
        product_id: Foreign key to Product
        quantity: Units produced (>= 0)
    """

    __tablename__ = "production_run_outputs"

    production_run_id = Column(
        Integer, ForeignKey("production_runs.id", ondelete="CASCADE"), nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Integer, nullable=False)

    production_run = relationship("ProductionRun", back_populates="outputs")
    product = relationship("Product")

    __table_args__ = (
        Index("idx_production_run_output_run", "production_run_id"),
        Index("idx_production_run_output_product", "product_id"),
        CheckConstraint("quantity >= 0", name="ck_production_run_output_quantity_non_negative"),
    )


class RunBatchLink(BaseModel):
    """
    Join row: one intermediate batch consumed by one production run.

    Note: batch_id is NOT a foreign key, for the same reason as
    BatchIngredientLink.lot_id: run genealogy outlives administrative
    deletion of a batch, and traces report the gap instead of failing.

    Attributes:
        production_run_id: Foreign key to ProductionRun (owning side)
        batch_id: Id of the consumed IntermediateBatch
        batch_type: "Dough" or "Filling", fixed at link creation
    """

    __tablename__ = "run_batch_links"

    production_run_id = Column(
        Integer, ForeignKey("production_runs.id", ondelete="CASCADE"), nullable=False
    )
    batch_id = Column(Integer, nullable=False)
    batch_type = Column(String(20), nullable=False)

    production_run = relationship("ProductionRun", back_populates="batch_links")

    __table_args__ = (
        Index("idx_run_batch_link_run", "production_run_id"),
        Index("idx_run_batch_link_batch", "batch_id"),
        UniqueConstraint("production_run_id", "batch_id", name="uq_run_batch_link"),
        CheckConstraint("batch_type IN ('Dough', 'Filling')", name="ck_run_batch_link_type"),
    )

    def __repr__(self) -> str:
        return (
            f"RunBatchLink(production_run_id={self.production_run_id}, "
            f"batch_id={self.batch_id}, batch_type='{self.batch_type}')"
        )
