"""
Product model for the finished-goods catalog.

Production runs record their output as (product, quantity) pairs against
this catalog.
"""

from sqlalchemy import Boolean, Column, Index, String

from .base import BaseModel


class Product(BaseModel):
    """
    Product model.

    Attributes:
        name: Product name (e.g., "Strawberry Jam Doughnut")
        sku: Stock keeping unit, unique (e.g., "DN-JAM")
        has_dough: Product is made with a dough batch
        has_filling: Product is made with a filling batch
        is_active: Soft delete flag
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=False, unique=True)
    has_dough = Column(Boolean, nullable=False, default=True)
    has_filling = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_product_active", "is_active"),)
