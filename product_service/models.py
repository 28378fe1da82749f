# product_service/models.py

"""
SQLAlchemy database models for the Product Service.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, String, Text

from .db import Base


def new_product_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """
    SQLAlchemy model for the 'products' table.
    Media fields hold the stored reference (URL or static path) returned by
    the upload endpoint, or an empty string.
    """

    __tablename__ = "products"

    # Canonical UUID string, assigned on creation and never changed.
    id = Column(String(36), primary_key=True, default=new_product_id)

    product_name = Column(String(200), nullable=False)
    price_new = Column(Float, nullable=False)
    brand = Column(String(100), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=False, default="")
    video_url = Column(Text, nullable=False, default="")

    # Both timestamps are set explicitly by the repository so that they are
    # identical at creation.
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_products_created_at", "created_at"),
        Index("ix_products_category_brand", "category", "brand"),
    )

    def __repr__(self):
        # A helpful representation when debugging
        return f"<Product(id={self.id}, name='{self.product_name}', brand='{self.brand}')>"
