# File: fleet_tracker/domain/strategies.py
"""
Strategy Pattern Implementation for Vehicle Status Authorization

This module implements the Strategy Pattern to encapsulate the status
transition rules of each caller role. The strategy is selected at runtime
from the roles an external identity provider resolved for the caller.

Key Strategies:
1. TechnicianTransitionStrategy - Fleet maintenance staff, any target but UNKNOWN
2. UserTransitionStrategy - Renters, only rent (AVAILABLE -> RENTED) and
   return (RENTED -> AVAILABLE)
3. NoRoleTransitionStrategy - Callers without a recognised role, always rejected

Validating one transition and enumerating the allowed targets must agree,
with one nuance: a technician's explicit same-status request validates
(the aggregate treats it as a no-op), while the enumerated targets never
include the current status.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, FrozenSet
from enum import Enum
import logging

from .models import VehicleStatus, ErrorCodes, Result, UNIT, Unit


# ============================================================================
# CALLER ROLES
# ============================================================================

class CallerRole(str, Enum):
    """Application roles issued by the identity provider"""
    TECHNICIAN = "Technician"
    USER = "User"


def resolve_caller_role(role_names: Optional[Iterable[str]]) -> Optional[CallerRole]:
    """
    Resolve the effective role from role claims (case-insensitive)
    Technician wins when both roles are present
    """
    names = {str(name).strip().lower() for name in (role_names or []) if name}

    if CallerRole.TECHNICIAN.value.lower() in names:
        return CallerRole.TECHNICIAN
    if CallerRole.USER.value.lower() in names:
        return CallerRole.USER
    return None


@dataclass(frozen=True)
class CallerContext:
    """Identity of the caller as resolved outside the core"""
    user_id: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, user_id: Optional[str], *roles: str) -> 'CallerContext':
        return cls(user_id, frozenset(roles))

    @property
    def role(self) -> Optional[CallerRole]:
        return resolve_caller_role(self.roles)


# ============================================================================
# STRATEGY INTERFACE
# ============================================================================

class StatusTransitionStrategy(ABC):
    """
    Abstract base class for status transition strategies
    Defines the rules one caller role applies to status changes
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def validate_transition(
        self,
        from_status: VehicleStatus,
        to_status: VehicleStatus
    ) -> Result[Unit]:
        """
        Check whether the role may move a vehicle between two statuses
        Returns: success with UNIT, or a policy failure
        """
        pass

    @abstractmethod
    def allowed_transitions(self, current_status: VehicleStatus) -> List[VehicleStatus]:
        """Statuses the role may move a vehicle to from current_status"""
        pass

    def get_strategy_name(self) -> str:
        """Get human-readable strategy name"""
        return self.__class__.__name__.replace("TransitionStrategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Strategy"


# ============================================================================
# CONCRETE STRATEGIES
# ============================================================================

class TechnicianTransitionStrategy(StatusTransitionStrategy):
    """
    Strategy for technicians
    Every transition is legal except one that targets UNKNOWN
    """

    TARGETS = (
        VehicleStatus.AVAILABLE,
        VehicleStatus.MAINTENANCE,
        VehicleStatus.OUT_OF_SERVICE,
        VehicleStatus.RENTED,
    )

    def validate_transition(self, from_status, to_status) -> Result[Unit]:
        if to_status == VehicleStatus.UNKNOWN:
            return Result.fail(
                ErrorCodes.UNAUTHORIZED_TRANSITION,
                "Cannot transition vehicle status to Unknown"
            )
        return Result.success(UNIT)

    def allowed_transitions(self, current_status) -> List[VehicleStatus]:
        return [status for status in self.TARGETS if status != current_status]


class UserTransitionStrategy(StatusTransitionStrategy):
    """
    Strategy for regular users
    Only the rent and return transitions are allowed
    """

    ALLOWED: Tuple[Tuple[VehicleStatus, VehicleStatus], ...] = (
        (VehicleStatus.AVAILABLE, VehicleStatus.RENTED),   # rent
        (VehicleStatus.RENTED, VehicleStatus.AVAILABLE),   # return
    )

    def validate_transition(self, from_status, to_status) -> Result[Unit]:
        if (from_status, to_status) in self.ALLOWED:
            return Result.success(UNIT)

        return Result.fail(
            ErrorCodes.UNAUTHORIZED_TRANSITION,
            f"Users cannot transition vehicle status from {_name(from_status)} to {_name(to_status)}"
        )

    def allowed_transitions(self, current_status) -> List[VehicleStatus]:
        return [target for source, target in self.ALLOWED if source == current_status]


class NoRoleTransitionStrategy(StatusTransitionStrategy):
    """Strategy for callers without a recognised role"""

    def validate_transition(self, from_status, to_status) -> Result[Unit]:
        return Result.fail(
            ErrorCodes.INVALID_ROLE,
            "User does not have required roles to modify vehicle status"
        )

    def allowed_transitions(self, current_status) -> List[VehicleStatus]:
        return []


def _name(status) -> str:
    return str(status)


# ============================================================================
# STRATEGY FACTORY AND VALIDATOR
# ============================================================================

class TransitionStrategyFactory:
    """Factory selecting the transition strategy for a role"""

    _strategies = {
        CallerRole.TECHNICIAN: TechnicianTransitionStrategy,
        CallerRole.USER: UserTransitionStrategy,
    }

    @classmethod
    def create_strategy(cls, role: Optional[CallerRole]) -> StatusTransitionStrategy:
        strategy_class = cls._strategies.get(role, NoRoleTransitionStrategy)
        return strategy_class()


class VehicleStatusValidator:
    """
    Validates vehicle status transitions based on the caller's role

    Usage:
        validator = VehicleStatusValidator.for_caller(caller)
        result = validator.validate_transition(VehicleStatus.AVAILABLE, VehicleStatus.RENTED)
    """

    def __init__(self, role: Optional[CallerRole]):
        self.role = role
        self.strategy = TransitionStrategyFactory.create_strategy(role)
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def for_caller(cls, caller: Optional[CallerContext]) -> 'VehicleStatusValidator':
        return cls(caller.role if caller else None)

    def validate_transition(self, from_status, to_status) -> Result[Unit]:
        result = self.strategy.validate_transition(from_status, to_status)
        if result.is_failure:
            self.logger.warning(
                f"Rejected transition {_name(from_status)} -> {_name(to_status)} "
                f"for role {self.role.value if self.role else 'none'}: {result.error.code}"
            )
        return result

    def allowed_transitions(self, current_status: VehicleStatus) -> List[VehicleStatus]:
        return self.strategy.allowed_transitions(current_status)
