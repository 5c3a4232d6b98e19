"""
DailyActiveLogEntry model for the per-day active lot of each ingredient.

Each row says "on this date, this ingredient type is being drawn from this
lot". There is at most one row per (log_date, ingredient_type_id); writing
a new selection for an existing pair replaces the old one.
"""

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class DailyActiveLogEntry(BaseModel):
    """
    DailyActiveLogEntry model.

    Attributes:
        log_date: Calendar date (no time of day)
        ingredient_type_id: Foreign key to IngredientType
        active_lot_id: Lot in use that day. Not a foreign key: the entry is a
            historical record and stays readable if the lot is deleted.
    """

    __tablename__ = "daily_active_log"

    log_date = Column(Date, nullable=False)
    ingredient_type_id = Column(
        Integer, ForeignKey("ingredient_types.id", ondelete="CASCADE"), nullable=False
    )
    active_lot_id = Column(Integer, nullable=False)

    ingredient_type = relationship("IngredientType")

    __table_args__ = (
        UniqueConstraint("log_date", "ingredient_type_id", name="uq_daily_active_log_date_type"),
        Index("idx_daily_active_log_date", "log_date"),
    )

    def __repr__(self) -> str:
        return (
            f"DailyActiveLogEntry(log_date={self.log_date}, "
            f"ingredient_type_id={self.ingredient_type_id}, active_lot_id={self.active_lot_id})"
        )
