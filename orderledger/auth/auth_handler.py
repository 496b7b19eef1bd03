"""
Authentication and actor resolution
Tokens are issued by the platform's account service; this module verifies them
and turns the claims into an Actor with an explicit capability set
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet, Optional
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from orderledger.config import SECRET_KEY, ACCESS_TOKEN_EXPIRE_MINUTES

ALGORITHM = "HS256"

security = HTTPBearer()


class Role(str, Enum):
    PLATFORM_ADMIN = "admin"
    FACILITY_ADMIN = "nursing_home_admin"
    FACILITY_USER = "nursing_home_user"
    CUSTOMER = "user"


class Capability(str, Enum):
    ACCESS_NURSING_HOME_ORDERS = "access_nursing_home_orders"
    ACCESS_ANY_FACILITY = "access_any_facility"
    ACCESS_OWN_FACILITY = "access_own_facility"
    EDIT_AFTER_DEADLINE = "edit_after_deadline"
    EDIT_SUBMITTED_ORDER = "edit_submitted_order"
    CANCEL_ORDER = "cancel_order"
    MANAGE_GIFT_CARDS = "manage_gift_cards"
    SETTLE_PAYMENTS = "settle_payments"


ROLE_CAPABILITIES = {
    Role.PLATFORM_ADMIN: frozenset(Capability),
    Role.FACILITY_ADMIN: frozenset({
        Capability.ACCESS_NURSING_HOME_ORDERS,
        Capability.ACCESS_OWN_FACILITY,
        Capability.EDIT_SUBMITTED_ORDER,
        Capability.CANCEL_ORDER,
    }),
    Role.FACILITY_USER: frozenset({Capability.ACCESS_NURSING_HOME_ORDERS}),
    Role.CUSTOMER: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    """The caller of a mutating operation"""
    user_id: str
    role: Role
    facility_id: Optional[str] = None
    capabilities: FrozenSet[Capability] = field(default=frozenset())

    @classmethod
    def for_role(cls, user_id: str, role, facility_id: Optional[str] = None) -> "Actor":
        role = Role(role)
        return cls(
            user_id=user_id,
            role=role,
            facility_id=facility_id,
            capabilities=ROLE_CAPABILITIES[role],
        )

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def can_access_facility(self, facility_id: str) -> bool:
        """Whether the actor may act on orders belonging to facility_id"""
        if self.can(Capability.ACCESS_ANY_FACILITY):
            return True
        return self.facility_id is not None and self.facility_id == facility_id

    def can_access_order(self, facility_id: str, created_by_user_id: str) -> bool:
        """Facility staff see their own orders; facility admins the whole facility"""
        if self.can(Capability.ACCESS_ANY_FACILITY):
            return True
        if not self.can_access_facility(facility_id):
            return False
        if self.can(Capability.ACCESS_OWN_FACILITY):
            return True
        return created_by_user_id == self.user_id


class AuthHandler:
    """Handles token creation and verification"""

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None):
        """Create a JWT access token"""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
        else:
            expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> dict:
        """Verify and decode a JWT token"""
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )


auth_handler = AuthHandler()


def get_current_actor(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Actor:
    """Dependency resolving the bearer token into an Actor"""
    payload = auth_handler.verify_token(credentials.credentials)

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return Actor.for_role(user_id, payload.get("role", Role.CUSTOMER.value), payload.get("facility_id"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unknown role"
        )


class CapabilityChecker:
    """Require a capability on the current actor"""

    def __init__(self, capability: Capability):
        self.capability = capability

    def __call__(self, actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.can(self.capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted"
            )
        return actor


gift_card_admin_required = CapabilityChecker(Capability.MANAGE_GIFT_CARDS)
settlement_required = CapabilityChecker(Capability.SETTLE_PAYMENTS)
nursing_home_orders_required = CapabilityChecker(Capability.ACCESS_NURSING_HOME_ORDERS)
