from core.database import Base
from sqlalchemy import (Column, Integer, String, ForeignKey, Enum)
from sqlalchemy.orm import relationship
from .mixins import CreatedAtMixin
from .enums import AddressType

class Address(Base, CreatedAtMixin):
    __tablename__ = "addresses"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="addresses")

    type = Column(Enum(AddressType, name="address_type"), nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    address1 = Column(String, nullable=False)
    address2 = Column(String)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    zip_code = Column(String, nullable=False)
    country = Column(String, nullable=False)
    phone = Column(String)
