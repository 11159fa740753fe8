"""
Authentication module for the Staff Skill Tracker.

Credentials are a (national id, password) pair compared as plain strings
against the fields stored in the dataset document. There is no hashing and
no token: a login simply resolves to a Principal kept in the Streamlit
session.

⚠️ Plaintext credentials are a known weakness of the stored document format.
Replacing them needs a data migration (hash every stored password) and is
tracked separately.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import streamlit as st

from skill_core.config import Settings, load_settings
from skill_core.data.models import Dataset, Hospital

logger = logging.getLogger(__name__)

ADMIN_DISPLAY_NAME = "ادمین کل"
SUPERVISOR_DISPLAY_NAME = "سوپروایزر"

MISSING_CREDENTIALS_MESSAGE = "کد ملی و رمز عبور الزامی است."
INVALID_CREDENTIALS_MESSAGE = "کد ملی یا رمز عبور نامعتبر است."


class UserRole(str, Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"
    STAFF = "staff"
    PATIENT = "patient"


@dataclass(frozen=True)
class Principal:
    """An authenticated identity plus the ids needed to open its view."""
    role: UserRole
    name: str = ""
    hospital_id: Optional[str] = None
    department_id: Optional[str] = None
    staff_id: Optional[str] = None
    patient_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# ==================== ROLE RESOLUTION ====================

def _matches(stored_id: Optional[str], stored_password: Optional[str], national_id: str, password: str) -> bool:
    return bool(stored_id) and stored_id == national_id and stored_password == password


def find_user(
    dataset: Dataset,
    national_id: str,
    password: str,
    settings: Optional[Settings] = None,
) -> Optional[Principal]:
    """
    Resolve credentials to a Principal by linear scan.

    Precedence is fixed, first match wins:
    admin, then every supervisor, then every department manager, then every
    staff member, then every patient. Within a level, hospitals and
    departments are scanned in document order.

    Returns:
        Principal, or None if nothing matches
    """
    settings = settings or load_settings()

    if national_id == settings.admin_national_id and password == settings.admin_password:
        return Principal(role=UserRole.ADMIN, name=ADMIN_DISPLAY_NAME)

    for hospital in dataset.hospitals:
        if _matches(hospital.supervisor_national_id, hospital.supervisor_password, national_id, password):
            return Principal(
                role=UserRole.SUPERVISOR,
                name=hospital.supervisor_name or SUPERVISOR_DISPLAY_NAME,
                hospital_id=hospital.id,
            )

    for hospital in dataset.hospitals:
        for department in hospital.departments:
            if _matches(department.manager_national_id, department.manager_password, national_id, password):
                return Principal(
                    role=UserRole.MANAGER,
                    name=department.manager_name or "",
                    hospital_id=hospital.id,
                    department_id=department.id,
                )

    for hospital in dataset.hospitals:
        for department in hospital.departments:
            for staff in department.staff:
                if _matches(staff.national_id, staff.password, national_id, password):
                    return Principal(
                        role=UserRole.STAFF,
                        name=staff.name,
                        hospital_id=hospital.id,
                        department_id=department.id,
                        staff_id=staff.id,
                    )

    for hospital in dataset.hospitals:
        for department in hospital.departments:
            for patient in department.patients:
                if _matches(patient.national_id, patient.password, national_id, password):
                    return Principal(
                        role=UserRole.PATIENT,
                        name=patient.name,
                        hospital_id=hospital.id,
                        department_id=department.id,
                        patient_id=patient.id,
                    )

    return None


def authenticate(
    dataset: Dataset,
    national_id: str,
    password: str,
    settings: Optional[Settings] = None,
) -> Tuple[Optional[Principal], Optional[str]]:
    """
    Login flow: (principal, None) on success, (None, message) otherwise.
    """
    national_id = (national_id or "").strip()
    if not national_id or not password:
        return None, MISSING_CREDENTIALS_MESSAGE

    principal = find_user(dataset, national_id, password, settings)
    if principal is None:
        logger.info("Failed login attempt")
        return None, INVALID_CREDENTIALS_MESSAGE

    logger.info(f"Login as {principal.role.value}")
    return principal, None


def can_reset_hospital(
    principal: Optional[Principal],
    hospital: Hospital,
    confirmation_id: str,
    settings: Optional[Settings] = None,
) -> bool:
    """
    A hospital reset is confirmed by typing the supervisor's national id,
    or, for the admin, the admin national id.
    """
    settings = settings or load_settings()
    if hospital.supervisor_national_id and confirmation_id == hospital.supervisor_national_id:
        return True
    return (
        principal is not None
        and principal.is_admin
        and confirmation_id == settings.admin_national_id
    )


# ==================== SESSION HELPERS ====================

SESSION_KEYS = ("authenticated", "principal", "role", "name")


def login_user(principal: Principal) -> None:
    """Store a resolved principal in the Streamlit session."""
    st.session_state.authenticated = True
    st.session_state.principal = principal
    st.session_state.role = principal.role.value
    st.session_state.name = principal.name


def logout_user():
    """
    Logout the current user and clear session state.
    """
    for key in SESSION_KEYS:
        if key in st.session_state:
            del st.session_state[key]


def check_authentication() -> bool:
    """
    Check if the current user is authenticated.

    Returns:
        bool: True if user is authenticated, False otherwise
    """
    return st.session_state.get("authenticated", False)


def get_current_principal() -> Optional[Principal]:
    if not check_authentication():
        return None
    return st.session_state.get("principal")


def check_admin_access() -> bool:
    """
    Check if the current user has admin privileges.

    Returns:
        bool: True if user is admin, False otherwise
    """
    if not check_authentication():
        return False

    return st.session_state.get("role") == UserRole.ADMIN.value


def get_user_role() -> Optional[str]:
    """
    Get the role of the currently authenticated user.

    Returns:
        Optional[str]: Role value or None if not authenticated
    """
    if not check_authentication():
        return None

    return st.session_state.get("role")


def require_role(*roles: Union[UserRole, str]) -> bool:
    """True if the session user holds one of ``roles`` (admin always passes)."""
    role = get_user_role()
    if role is None:
        return False
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}
    return role == UserRole.ADMIN.value or role in allowed
