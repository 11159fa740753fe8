# =============================================================================
# tests/unit/test_authentication.py
# Unit Tests for Credential Lookup and Session Helpers
# =============================================================================

import pytest

from skill_core.config import Settings


@pytest.fixture
def auth_settings():
    return Settings(admin_national_id="1111111111", admin_password="admin")


class TestFindUser:
    """Test role resolution by credentials"""

    def test_admin(self, sample_dataset, auth_settings):
        from skill_core.auth import UserRole, find_user, ADMIN_DISPLAY_NAME

        principal = find_user(sample_dataset, "1111111111", "admin", auth_settings)

        assert principal.role == UserRole.ADMIN
        assert principal.is_admin
        assert principal.name == ADMIN_DISPLAY_NAME

    @pytest.mark.parametrize("national_id,password,role,ids", [
        ("9000", "sup", "supervisor", ("H1", None, None, None)),
        ("1000", "mm", "manager", ("H1", "D1", None, None)),
        ("2000", "ss", "staff", ("H1", "D1", "S1", None)),
        ("3000", "pp", "patient", ("H1", "D1", None, "P1")),
        ("1100", "m2", "manager", ("H2", "D2", None, None)),
    ])
    def test_each_role(self, sample_dataset, auth_settings, national_id, password, role, ids):
        from skill_core.auth import find_user

        principal = find_user(sample_dataset, national_id, password, auth_settings)

        assert principal.role.value == role
        assert (principal.hospital_id, principal.department_id, principal.staff_id, principal.patient_id) == ids

    def test_wrong_password(self, sample_dataset, auth_settings):
        from skill_core.auth import find_user

        assert find_user(sample_dataset, "9000", "nope", auth_settings) is None

    def test_empty_stored_id_never_matches(self, sample_dataset, auth_settings):
        """A record without a national id cannot be logged into"""
        from skill_core.auth import find_user

        staff = sample_dataset.find_staff("S1")[2]
        staff.national_id = ""
        staff.password = ""

        assert find_user(sample_dataset, "", "", auth_settings) is None

    def test_manager_beats_staff(self, sample_dataset, auth_settings):
        from skill_core.auth import UserRole, find_user

        staff = sample_dataset.find_staff("S1")[2]
        staff.national_id, staff.password = "1000", "mm"

        assert find_user(sample_dataset, "1000", "mm", auth_settings).role == UserRole.MANAGER

    def test_supervisor_of_later_hospital_beats_manager(self, sample_dataset, auth_settings):
        """Precedence is by level across all hospitals, not hospital by hospital"""
        from skill_core.auth import UserRole, find_user

        h2 = sample_dataset.find_hospital("H2")
        h2.supervisor_national_id, h2.supervisor_password = "1000", "mm"

        principal = find_user(sample_dataset, "1000", "mm", auth_settings)

        assert principal.role == UserRole.SUPERVISOR
        assert principal.hospital_id == "H2"

    def test_supervisor_name_fallback(self, sample_dataset, auth_settings):
        from skill_core.auth import SUPERVISOR_DISPLAY_NAME, find_user

        sample_dataset.find_hospital("H1").supervisor_name = None

        assert find_user(sample_dataset, "9000", "sup", auth_settings).name == SUPERVISOR_DISPLAY_NAME


class TestAuthenticate:
    """Test the login flow messages"""

    @pytest.mark.parametrize("national_id,password", [("", "x"), ("  ", "x"), ("9000", ""), (None, None)])
    def test_missing_credentials(self, sample_dataset, auth_settings, national_id, password):
        from skill_core.auth import MISSING_CREDENTIALS_MESSAGE, authenticate

        assert authenticate(sample_dataset, national_id, password, auth_settings) == (
            None, MISSING_CREDENTIALS_MESSAGE
        )

    def test_invalid_credentials(self, sample_dataset, auth_settings):
        from skill_core.auth import INVALID_CREDENTIALS_MESSAGE, authenticate

        assert authenticate(sample_dataset, "9000", "bad", auth_settings) == (None, INVALID_CREDENTIALS_MESSAGE)

    def test_national_id_is_trimmed(self, sample_dataset, auth_settings):
        from skill_core.auth import authenticate

        principal, error = authenticate(sample_dataset, " 9000 ", "sup", auth_settings)

        assert error is None
        assert principal.hospital_id == "H1"


class TestResetConfirmation:
    """Test hospital reset confirmation"""

    def test_supervisor_id_confirms(self, sample_dataset, auth_settings):
        from skill_core.auth import can_reset_hospital

        assert can_reset_hospital(None, sample_dataset.find_hospital("H1"), "9000", auth_settings)

    def test_admin_id_only_for_admin(self, sample_dataset, auth_settings):
        from skill_core.auth import Principal, UserRole, can_reset_hospital

        hospital = sample_dataset.find_hospital("H1")
        admin = Principal(role=UserRole.ADMIN)
        manager = Principal(role=UserRole.MANAGER)

        assert can_reset_hospital(admin, hospital, "1111111111", auth_settings)
        assert not can_reset_hospital(manager, hospital, "1111111111", auth_settings)
        assert not can_reset_hospital(admin, hospital, "wrong", auth_settings)


class TestSessionHelpers:
    """Test Streamlit session helpers"""

    def test_login_and_logout(self, mock_streamlit):
        from skill_core.auth import (
            Principal, UserRole, check_authentication, get_current_principal,
            get_user_role, login_user, logout_user,
        )

        principal = Principal(role=UserRole.STAFF, name="Sara", staff_id="S1")
        login_user(principal)

        assert check_authentication()
        assert get_current_principal() == principal
        assert get_user_role() == "staff"

        logout_user()

        assert not check_authentication()
        assert get_current_principal() is None
        assert get_user_role() is None

    def test_admin_access(self, mock_streamlit):
        from skill_core.auth import Principal, UserRole, check_admin_access, login_user

        assert not check_admin_access()
        login_user(Principal(role=UserRole.ADMIN))

        assert check_admin_access()

    def test_require_role(self, mock_streamlit):
        from skill_core.auth import Principal, UserRole, login_user, require_role

        assert not require_role(UserRole.MANAGER)

        login_user(Principal(role=UserRole.MANAGER))
        assert require_role(UserRole.MANAGER, "supervisor")
        assert not require_role(UserRole.STAFF)

        login_user(Principal(role=UserRole.ADMIN))
        assert require_role(UserRole.STAFF)
