# models/property.py
import enum
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, TimestampMixin


class ListingType(str, enum.Enum):
     """How a property is offered on the portal."""
     SALE = "SALE"
     RENT = "RENT"
     BOTH = "BOTH"


class Property(TimestampMixin, Base):
     """
     Property model - a listing owned by a landlord.

     Listings are managed elsewhere; the purchase workflow reads the sale
     price and flips `available`/`sold` when a purchase completes.
     """
     __tablename__ = "properties"

     id = Column(Integer, primary_key=True, autoincrement=True)
     title = Column(String(255), nullable=False)
     description = Column(Text, nullable=True)
     address = Column(String(500), nullable=True)
     owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

     listing_type = Column(String(10), default=ListingType.SALE.value, nullable=False)
     sale_price = Column(Numeric(14, 2), nullable=True)

     # Availability
     available = Column(Boolean, default=True, nullable=False)
     sold = Column(Boolean, default=False, nullable=False)
     buyer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
     sold_at = Column(DateTime(timezone=True), nullable=True)

     # Relationships
     owner = relationship("User", foreign_keys=[owner_id])
     buyer = relationship("User", foreign_keys=[buyer_id])
     leases = relationship("Lease", back_populates="property")
     purchase_requests = relationship("PurchaseRequest", back_populates="property")

     @property
     def is_for_sale(self) -> bool:
          """Listed for sale at a positive price and still on the market."""
          return (
               self.listing_type in (ListingType.SALE.value, ListingType.BOTH.value)
               and self.sale_price is not None
               and self.sale_price > 0
               and self.available
               and not self.sold
          )

     def __repr__(self):
          return f"<Property(id={self.id}, title='{self.title}', sold={self.sold})>"
