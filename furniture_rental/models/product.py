import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, CheckConstraint
from ..database import Base
import enum


class ProductCategory(str, enum.Enum):
    CHAIR = "chair"
    TABLE = "table"
    ARMCHAIR = "armchair"
    OTHER = "other"


class Product(Base):
    """Rentable furniture type with a fixed physical unit count"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(150), nullable=False)
    category = Column(String(20), nullable=False, default=ProductCategory.OTHER.value)
    total_quantity = Column(Integer, nullable=False, default=1)  # supply ceiling
    price_per_day = Column(Integer, nullable=False, default=0)  # CLP, no minor unit
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    # Bumped by every committed reservation that references this product.
    # Commits use it as a conditional-write token.
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint('total_quantity >= 1', name='ck_product_total_quantity_positive'),
        CheckConstraint('price_per_day >= 0', name='ck_product_price_non_negative'),
    )

    def __repr__(self):
        return f"<Product {self.name} x{self.total_quantity}>"
