"""
Authentication and role resolution for the Staff Skill Tracker.

⚠️ Credentials are compared in plaintext against the stored dataset.
"""

from .authentication import (
    ADMIN_DISPLAY_NAME,
    SUPERVISOR_DISPLAY_NAME,
    MISSING_CREDENTIALS_MESSAGE,
    INVALID_CREDENTIALS_MESSAGE,
    UserRole,
    Principal,
    find_user,
    authenticate,
    can_reset_hospital,
    login_user,
    logout_user,
    check_authentication,
    check_admin_access,
    get_current_principal,
    get_user_role,
    require_role,
)

__all__ = [
    "ADMIN_DISPLAY_NAME",
    "SUPERVISOR_DISPLAY_NAME",
    "MISSING_CREDENTIALS_MESSAGE",
    "INVALID_CREDENTIALS_MESSAGE",
    "UserRole",
    "Principal",
    "find_user",
    "authenticate",
    "can_reset_hospital",
    "login_user",
    "logout_user",
    "check_authentication",
    "check_admin_access",
    "get_current_principal",
    "get_user_role",
    "require_role",
]
