from core.database import Base
from sqlalchemy import (Column, Integer, String, Boolean, ForeignKey)
from sqlalchemy.orm import relationship

class ProductVariant(Base):
    __tablename__ = "product_variants"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    #relationships
    product = relationship("Product", back_populates="variants")

    name = Column(String, nullable=False)
    sku = Column(String, unique=True)
    is_active = Column(Boolean, default=True)
