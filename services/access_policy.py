# services/access_policy.py
"""
Role checks for the purchase workflow.

Identity is always passed in explicitly as a Principal built from the
verified token; nothing here reads ambient request state.
"""
from dataclasses import dataclass

from models import PurchaseRequest, UserRole
from services.errors import AuthorizationError


@dataclass(frozen=True)
class Principal:
     """The authenticated caller of a service operation."""
     user_id: int
     role: str

     @property
     def is_tenant(self) -> bool:
          return self.role == UserRole.TENANT.value

     @property
     def is_landlord(self) -> bool:
          return self.role == UserRole.LANDLORD.value

     @property
     def is_admin(self) -> bool:
          return self.role == UserRole.ADMIN.value


def is_tenant_of(principal: Principal, request: PurchaseRequest) -> bool:
     return principal.is_tenant and request.tenant_id == principal.user_id


def is_landlord_of(principal: Principal, request: PurchaseRequest) -> bool:
     return principal.is_landlord and request.landlord_id == principal.user_id


def is_party_to(principal: Principal, request: PurchaseRequest) -> bool:
     return is_tenant_of(principal, request) or is_landlord_of(principal, request)


def require_role(principal: Principal, role: UserRole) -> None:
     if principal.role != role.value:
          raise AuthorizationError(f"Only users with role {role.value} can perform this action")


def require_tenant_of(principal: Principal, request: PurchaseRequest) -> None:
     if not is_tenant_of(principal, request):
          raise AuthorizationError("Only the requesting tenant can perform this action")


def require_landlord_of(principal: Principal, request: PurchaseRequest) -> None:
     if not is_landlord_of(principal, request):
          raise AuthorizationError("Only the landlord who owns this property can perform this action")


def require_party_to(principal: Principal, request: PurchaseRequest) -> None:
     if not is_party_to(principal, request):
          raise AuthorizationError("You do not have permission to view this purchase request")
