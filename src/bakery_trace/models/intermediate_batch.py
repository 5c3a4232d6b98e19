"""
IntermediateBatch and BatchIngredientLink models.

An intermediate batch is a dough or filling made from one or more
ingredient lots. The consumed lots are recorded in an explicit join table
(one row per lot consumed) so that a lot can feed many batches.

Link rows are append-only: they are never repointed to a different lot,
only deleted together with their batch.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import BatchType


class IntermediateBatch(BaseModel):
    """
    IntermediateBatch model for dough and filling batches.

    Attributes:
        code: Human batch code (e.g., "DOUGH-101"), not guaranteed unique
        batch_type: "Dough" or "Filling" (see BatchType)
        name: Recipe or product name (e.g., "White Sourdough")
        made_at: When the batch was made
        created_by: Operator who made the batch

    Relationships:
        ingredient_links: BatchIngredientLink rows for consumed lots
    """

    __tablename__ = "intermediate_batches"

    code = Column(String(100), nullable=False)
    batch_type = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False)
    made_at = Column(DateTime, nullable=False)
    created_by = Column(String(100), nullable=False)

    ingredient_links = relationship(
        "BatchIngredientLink",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="BatchIngredientLink.id",
    )

    __table_args__ = (
        Index("idx_intermediate_batch_code", "code"),
        Index("idx_intermediate_batch_made_at", "made_at"),
        CheckConstraint(
            "batch_type IN ('Dough', 'Filling')", name="ck_intermediate_batch_type"
        ),
    )

    @property
    def type_enum(self) -> BatchType:
        """Batch type as an enum."""
        return BatchType(self.batch_type)

    @property
    def lot_ids(self) -> list:
        """Ids of consumed lots, in link order."""
        return [link.lot_id for link in self.ingredient_links]

    def __repr__(self) -> str:
        return (
            f"IntermediateBatch(id={self.id}, code='{self.code}', "
            f"batch_type='{self.batch_type}')"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships)
        result["lot_ids"] = self.lot_ids
        return result


class BatchIngredientLink(BaseModel):
    """
    Join row: one ingredient lot consumed by one intermediate batch.

    Note: lot_id is NOT a foreign key. Consumption history must survive the
    administrative deletion of a lot; traces treat a missing lot as absent.

    Attributes:
        batch_id: Foreign key to IntermediateBatch (owning side)
        lot_id: Id of the consumed IngredientLot
    """

    __tablename__ = "batch_ingredient_links"

    batch_id = Column(
        Integer, ForeignKey("intermediate_batches.id", ondelete="CASCADE"), nullable=False
    )
    lot_id = Column(Integer, nullable=False)

    batch = relationship("IntermediateBatch", back_populates="ingredient_links")

    __table_args__ = (
        Index("idx_batch_ingredient_link_batch", "batch_id"),
        Index("idx_batch_ingredient_link_lot", "lot_id"),
        UniqueConstraint("batch_id", "lot_id", name="uq_batch_ingredient_link"),
    )

    def __repr__(self) -> str:
        return f"BatchIngredientLink(batch_id={self.batch_id}, lot_id={self.lot_id})"
