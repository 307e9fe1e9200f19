"""
Aqua Assist - Core Utilities
Central configuration, logging, errors and caller identity.
"""

from aquaassist.core.config import settings, get_settings, Settings
from aquaassist.core.auth import Actor, Role, require_roles
from aquaassist.core.exceptions import (
    AquaAssistError,
    ValidationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    UpstreamUnavailable,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "Actor",
    "Role",
    "require_roles",
    "AquaAssistError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamUnavailable",
]
