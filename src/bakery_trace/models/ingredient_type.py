"""
IngredientType model for raw ingredient reference data.

An ingredient type is a category of raw ingredient (e.g. "Strong White
Flour") with a default unit and storage condition. It is configuration
data: production activity never creates or changes it.
"""

from sqlalchemy import Boolean, Column, Index, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class IngredientType(BaseModel):
    """
    IngredientType model.

    Attributes:
        name: Display name, unique (e.g., "Strong White Flour")
        default_unit: Unit lots are normally received in (e.g., "kg")
        storage: Storage condition ("Ambient", "Chilled", "Frozen")
        is_active: Soft delete flag

    Relationships:
        lots: IngredientLots received for this type
    """

    __tablename__ = "ingredient_types"

    name = Column(String(200), nullable=False, unique=True)
    default_unit = Column(String(20), nullable=False)
    storage = Column(String(20), nullable=False, default="Ambient")
    is_active = Column(Boolean, nullable=False, default=True)

    lots = relationship("IngredientLot", back_populates="ingredient_type")

    __table_args__ = (Index("idx_ingredient_type_active", "is_active"),)
