from core.database import Base
from sqlalchemy import (Column, Integer, String, Boolean)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin

class User(Base, CreatedAtMixin):
    __tablename__ = "users"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #relationships
    orders = relationship("Order", back_populates="user")
    addresses = relationship("Address", back_populates="user")

    email = Column(String, unique=True, nullable=False)
    first_name = Column(String)
    last_name = Column(String)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    role = Column(String, default="customer")
    phone_number = Column(String)
    stripe_customer_id = Column(String, unique=True)
