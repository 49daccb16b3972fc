"""Account lifecycle core: identity resolution, role changes and password resets."""

from .domain.account import Account
from .domain.manipulator import RoleManipulator
from .domain.resetting import ResetTokenService
from .domain.resolver import IdentityResolver

__version__ = "0.1.0"

__all__ = [
    "Account",
    "IdentityResolver",
    "ResetTokenService",
    "RoleManipulator",
]
