# hc_core/iam/identity.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from django.db import models


class Role(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    EXPERT = "EXPERT", "Care coordination expert"
    SUPPORT = "SUPPORT", "Support desk"
    CARE_GIVER = "CARE_GIVER", "Caregiver"
    USER = "USER", "Registered customer"


ROLE_VALUES = frozenset(r.value for r in Role)


@dataclass(frozen=True)
class Actor:
    """
    Resolved caller identity.

    - registered actor: user_id is set (roles come from Django groups)
    - guest: phone only, no roles (unauthenticated intake flows)
    """
    user_id: Optional[int] = None
    phone: Optional[str] = None
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_registered(self) -> bool:
        return self.user_id is not None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None and bool(self.phone)


def has_role(actor_roles: Iterable[str], required: Iterable[str]) -> bool:
    """Roles are OR'd: true iff the two sets intersect."""
    return bool(set(actor_roles) & set(required))


def _user_roles(user) -> set[str]:
    """
    Resolve roles from Django groups.
    Superuser is treated as ADMIN; an authenticated user with no staff
    group is a plain registered customer (USER).
    """
    roles: set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(Role.ADMIN.value)

    if hasattr(user, "groups"):
        roles.update(n for n in user.groups.values_list("name", flat=True) if n in ROLE_VALUES)

    if not roles:
        roles.add(Role.USER.value)

    return roles


def _user_phone(user) -> Optional[str]:
    profile = getattr(user, "hc_profile", None)
    if profile is not None and profile.phone:
        return profile.phone
    return None


def actor_for_user(user) -> Actor:
    return Actor(
        user_id=user.id,
        phone=_user_phone(user),
        roles=frozenset(_user_roles(user)),
    )


def identify(request, guest_phone: Optional[str] = None) -> Optional[Actor]:
    """
    Resolve the inbound credential to an Actor.

    Returns None when there is neither an authenticated user nor a guest phone.
    """
    user = getattr(request, "user", None)
    if user is not None and getattr(user, "is_authenticated", False):
        return actor_for_user(user)

    phone = (guest_phone or "").strip()
    if phone:
        return Actor(user_id=None, phone=phone, roles=frozenset())

    return None
