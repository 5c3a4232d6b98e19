"""
ReceivingReport model for grouping lots received in one delivery.

A receiving report is the paperwork for a delivery: one report, several
lot lines. Lots created through a report inherit its timestamp and receiver.
"""

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class ReceivingReport(BaseModel):
    """
    ReceivingReport model.

    Attributes:
        received_at: When the delivery was received
        received_by: Operator who signed for the delivery
        reference: Optional delivery note or supplier reference
        notes: Optional free-text notes

    Relationships:
        lots: IngredientLots recorded on this report
    """

    __tablename__ = "receiving_reports"

    received_at = Column(DateTime, nullable=False)
    received_by = Column(String(100), nullable=False)
    reference = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    lots = relationship("IngredientLot", back_populates="receiving_report")

    __table_args__ = (Index("idx_receiving_report_received_at", "received_at"),)

    def __repr__(self) -> str:
        return f"ReceivingReport(id={self.id}, reference='{self.reference}')"

    def to_dict(self, include_relationships: bool = False) -> dict:
        result = super().to_dict(include_relationships)
        result["lot_ids"] = [lot.id for lot in self.lots]
        return result
