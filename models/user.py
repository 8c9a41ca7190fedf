# models/user.py
import enum
from sqlalchemy import Column, Integer, String, DateTime, func
from .base import Base


class UserRole(str, enum.Enum):
     """Roles known to the purchase workflow."""
     TENANT = "TENANT"
     LANDLORD = "LANDLORD"
     ADMIN = "ADMIN"


class User(Base):
     """
     User model - central identity table.

     Owned by the authentication service; the purchase workflow only reads
     names and emails for receipts and the role for access checks.
     """
     __tablename__ = "users"

     id = Column(Integer, primary_key=True, autoincrement=True)
     email = Column(String(255), unique=True, nullable=False, index=True)
     first_name = Column(String(100), nullable=False)
     last_name = Column(String(100), nullable=False)
     role = Column(String(50), nullable=False)  # TENANT, LANDLORD, ADMIN
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     @property
     def full_name(self) -> str:
          return f"{self.first_name} {self.last_name}".strip()

     def __repr__(self):
          return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
