from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Numeric)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin, UpdatedAtMixin

class Product(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "products"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    category_id = Column(Integer, ForeignKey("categories.id"))

    #relationships
    order_items = relationship("OrderItem", back_populates="product")
    category = relationship("Category", back_populates="products")
    variants = relationship("ProductVariant", back_populates="product")

    name = Column(String, nullable=False)
    slug = Column(String, unique=True)
    description = Column(String)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0)
