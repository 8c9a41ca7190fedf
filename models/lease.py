# models/lease.py
from datetime import date
from typing import Optional

from sqlalchemy import Column, Integer, Date, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base


class Lease(Base):
     """
     Lease model - rental agreements between tenants and properties.

     Only consulted by the purchase workflow: a tenant holding an active
     exclusive lease on a property cannot file a purchase request for it.
     """
     __tablename__ = "leases"

     id = Column(Integer, primary_key=True, autoincrement=True)
     property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
     tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

     # Lease period
     start_date = Column(Date, nullable=False)
     end_date = Column(Date, nullable=False)
     exclusive = Column(Boolean, default=True, nullable=False)

     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     property = relationship("Property", back_populates="leases")

     def is_active(self, on: Optional[date] = None) -> bool:
          """Check if the lease covers the given day (today by default)."""
          on = on or date.today()
          return self.start_date <= on <= self.end_date

     def __repr__(self):
          return f"<Lease(id={self.id}, tenant_id={self.tenant_id}, property_id={self.property_id})>"
