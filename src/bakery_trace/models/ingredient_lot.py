"""
IngredientLot model for physical receipts of raw ingredients.

Each lot is one delivery of one ingredient type, labelled with the
supplier's batch code. Supplier batch codes are free text and NOT unique:
two lots may share a code across ingredient types or re-deliveries, so
lots are always identified internally by id.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class IngredientLot(BaseModel):
    """
    IngredientLot model.

    Attributes:
        ingredient_type_id: Foreign key to IngredientType
        batch_code: Supplier batch code (free text, not unique)
        received_at: When the lot was received (compared by instant)
        best_before: Best-before date printed on the goods
        quantity: Optional received quantity
        unit: Optional unit for quantity
        storage: Storage condition at receipt
        received_by: Operator who received the lot
        notes: Optional notes
        receiving_report_id: Optional parent ReceivingReport
    """

    __tablename__ = "ingredient_lots"

    ingredient_type_id = Column(
        Integer, ForeignKey("ingredient_types.id", ondelete="RESTRICT"), nullable=False
    )
    receiving_report_id = Column(
        Integer, ForeignKey("receiving_reports.id", ondelete="SET NULL"), nullable=True
    )

    batch_code = Column(String(100), nullable=False)
    received_at = Column(DateTime, nullable=False)
    best_before = Column(Date, nullable=True)
    quantity = Column(Numeric(10, 3), nullable=True)
    unit = Column(String(20), nullable=True)
    storage = Column(String(20), nullable=False, default="Ambient")
    received_by = Column(String(100), nullable=False)
    notes = Column(Text, nullable=True)

    ingredient_type = relationship("IngredientType", back_populates="lots")
    receiving_report = relationship("ReceivingReport", back_populates="lots")

    __table_args__ = (
        Index("idx_ingredient_lot_type_received", "ingredient_type_id", "received_at"),
        Index("idx_ingredient_lot_batch_code", "batch_code"),
        Index("idx_ingredient_lot_report", "receiving_report_id"),
        CheckConstraint(
            "quantity IS NULL OR quantity >= 0", name="ck_ingredient_lot_quantity_non_negative"
        ),
    )

    def __repr__(self) -> str:
        """String representation of ingredient lot."""
        return (
            f"IngredientLot(id={self.id}, ingredient_type_id={self.ingredient_type_id}, "
            f"batch_code='{self.batch_code}')"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert ingredient lot to dictionary.

        Args:
            include_relationships: If True, include ingredient type details

        Returns:
            Dictionary representation with formatted fields
        """
        result = super().to_dict(include_relationships)

        # Convert Decimal to string for JSON compatibility (preserving precision)
        if self.quantity is not None:
            result["quantity"] = str(self.quantity)

        result["ingredient_type_name"] = (
            self.ingredient_type.name if self.ingredient_type else None
        )
        return result
