import pytest

from domain.common.exceptions import DomainValidationException, PermissionDeniedException
from domain.identity import Capability, Identity, Profile, Role


@pytest.mark.parametrize(
    "role, capability, allowed",
    [
        (Role.STUDENT, Capability.PURCHASE_COURSE, True),
        (Role.STUDENT, Capability.RECEIVE_PAYOUTS, False),
        (Role.INSTRUCTOR, Capability.RECEIVE_PAYOUTS, True),
        (Role.INSTRUCTOR, Capability.MANAGE_PAYOUTS, False),
        (Role.ADMIN, Capability.MANAGE_PAYOUTS, True),
        (Role.ADMIN, Capability.VERIFY_BANK_ACCOUNTS, True),
        (Role.ADMIN, Capability.MANAGE_ROLES, False),
        (Role.SUPER_ADMIN, Capability.MANAGE_ROLES, True),
        (Role.SUPER_ADMIN, Capability.VIEW_PLATFORM_REVENUE, True),
    ],
)
def test_role_capabilities(role, capability, allowed):
    assert Identity(user_id="u1", role=role).can(capability) is allowed


def test_require_raises_permission_denied():
    identity = Identity(user_id="u1", role=Role.STUDENT)
    with pytest.raises(PermissionDeniedException) as exc_info:
        identity.require(Capability.MANAGE_PAYOUTS)
    assert exc_info.value.details == {"capability": "manage_payouts", "role": "student"}


@pytest.mark.parametrize(
    "full_name, first, last",
    [
        ("Siti Nur Aisyah", "Siti", "Nur Aisyah"),
        ("Budi", "Budi", "User"),
        (None, "Anonymous", "User"),
        ("   ", "Anonymous", "User"),
    ],
)
def test_profile_name_parts(full_name, first, last):
    profile = Profile(id="u1", email=None, full_name=full_name)
    assert profile.first_name == first
    assert profile.last_name == last


def test_change_role_to_same_role_is_rejected():
    profile = Profile(id="u1", email=None, full_name=None, role=Role.INSTRUCTOR)
    with pytest.raises(DomainValidationException):
        profile.change_role(Role.INSTRUCTOR)

    profile.change_role(Role.ADMIN)
    assert profile.role is Role.ADMIN
    assert profile.updated_at is not None
