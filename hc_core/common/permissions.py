# hc_core/common/permissions.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from django.db.models import Q
from rest_framework.permissions import BasePermission

from hc_core.common.api.exceptions import EntityNotFound, Forbidden, Unauthenticated
from hc_core.iam.identity import Actor, Role, has_role, identify

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    REQUEST = "REQUEST"
    PATIENT = "PATIENT"
    REQUESTER = "REQUESTER"
    DOCUMENT = "DOCUMENT"
    USER = "USER"
    AUDIT = "AUDIT"


class Operation(str, Enum):
    LIST = "LIST"
    VIEW = "VIEW"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    ASSIGN = "ASSIGN"
    CLOSE = "CLOSE"
    CAREGIVER_REJECT = "CAREGIVER_REJECT"
    ESCALATE = "ESCALATE"
    RESOLVE_ESCALATION = "RESOLVE_ESCALATION"
    MINT_UPLOAD_TOKEN = "MINT_UPLOAD_TOKEN"
    SUBMIT = "SUBMIT"
    SET_STATUS = "SET_STATUS"
    SEARCH = "SEARCH"


class Relation(str, Enum):
    ASSIGNED_CAREGIVER = "ASSIGNED_CAREGIVER"
    REQUEST_OWNER = "REQUEST_OWNER"
    ELEVATED_REQUESTER = "ELEVATED_REQUESTER"
    LINKED_REQUESTER = "LINKED_REQUESTER"


@dataclass(frozen=True)
class Grant:
    roles: FrozenSet[str] = frozenset()
    relations: FrozenSet[Relation] = frozenset()
    allow_guest: bool = False


def _roles(*roles: Role) -> FrozenSet[str]:
    return frozenset(r.value for r in roles)


def _relations(*relations: Relation) -> FrozenSet[Relation]:
    return frozenset(relations)


ALL_ROLES = _roles(*Role)
STAFF_READ = _roles(Role.ADMIN, Role.EXPERT, Role.SUPPORT)
STAFF_WRITE = _roles(Role.ADMIN, Role.EXPERT)
SUPPORT_DESK = _roles(Role.ADMIN, Role.SUPPORT)


# -----------------------------
# (Resource, Operation) -> Grant
# -----------------------------
PERMISSION_MATRIX: Dict[Tuple[Resource, Operation], Grant] = {
    # Requests
    (Resource.REQUEST, Operation.LIST): Grant(roles=ALL_ROLES),
    (Resource.REQUEST, Operation.CREATE): Grant(roles=ALL_ROLES, allow_guest=True),
    (Resource.REQUEST, Operation.VIEW): Grant(
        roles=STAFF_READ,
        relations=_relations(
            Relation.ASSIGNED_CAREGIVER,
            Relation.ELEVATED_REQUESTER,
            Relation.REQUEST_OWNER,
        ),
    ),
    (Resource.REQUEST, Operation.UPDATE): Grant(roles=STAFF_WRITE),
    (Resource.REQUEST, Operation.ASSIGN): Grant(roles=STAFF_WRITE),
    (Resource.REQUEST, Operation.CLOSE): Grant(roles=STAFF_WRITE),
    (Resource.REQUEST, Operation.MINT_UPLOAD_TOKEN): Grant(roles=STAFF_WRITE),
    (Resource.REQUEST, Operation.CAREGIVER_REJECT): Grant(
        relations=_relations(Relation.ASSIGNED_CAREGIVER),
    ),
    (Resource.REQUEST, Operation.ESCALATE): Grant(
        relations=_relations(Relation.ELEVATED_REQUESTER, Relation.REQUEST_OWNER),
    ),
    (Resource.REQUEST, Operation.RESOLVE_ESCALATION): Grant(roles=SUPPORT_DESK),

    # Patients
    (Resource.PATIENT, Operation.LIST): Grant(roles=ALL_ROLES),
    (Resource.PATIENT, Operation.CREATE): Grant(roles=ALL_ROLES),
    (Resource.PATIENT, Operation.VIEW): Grant(
        roles=STAFF_READ,
        relations=_relations(Relation.LINKED_REQUESTER),
    ),
    (Resource.PATIENT, Operation.UPDATE): Grant(
        roles=STAFF_WRITE,
        relations=_relations(Relation.LINKED_REQUESTER),
    ),
    (Resource.PATIENT, Operation.SEARCH): Grant(roles=STAFF_READ),

    # Requester links
    (Resource.REQUESTER, Operation.VIEW): Grant(roles=STAFF_READ),
    (Resource.REQUESTER, Operation.UPDATE): Grant(roles=STAFF_WRITE),

    # Documents
    (Resource.DOCUMENT, Operation.VIEW): Grant(
        roles=STAFF_READ,
        relations=_relations(Relation.ELEVATED_REQUESTER),
    ),
    (Resource.DOCUMENT, Operation.SUBMIT): Grant(
        roles=STAFF_WRITE,
        relations=_relations(Relation.LINKED_REQUESTER),
    ),
    (Resource.DOCUMENT, Operation.SET_STATUS): Grant(roles=STAFF_WRITE),

    # Users / audit
    (Resource.USER, Operation.LIST): Grant(roles=STAFF_WRITE),
    (Resource.AUDIT, Operation.LIST): Grant(roles=_roles(Role.ADMIN)),
}


# -----------------------------
# Relation predicates
# -----------------------------

def _patient_id_of(obj) -> Optional[int]:
    """
    Patient instance -> its own pk; request/document/link -> patient_id.
    """
    if obj is None:
        return None
    pid = getattr(obj, "patient_id", None)
    if pid is not None:
        return pid
    if obj._meta.label_lower == "patients.patient":
        return obj.pk
    return None


def _link_q(actor: Actor) -> Q:
    q = Q(user_id=actor.user_id)
    if actor.phone:
        q |= Q(phone=actor.phone)
    return q


def _is_assigned_caregiver(actor: Actor, obj) -> bool:
    return (
        has_role(actor.roles, {Role.CARE_GIVER.value})
        and getattr(obj, "assigned_caregiver_id", None) == actor.user_id
    )


def _is_request_owner(actor: Actor, obj) -> bool:
    link = getattr(obj, "requester", None)
    if link is None:
        return False
    if link.user_id is not None and link.user_id == actor.user_id:
        return True
    return bool(actor.phone) and link.phone == actor.phone


def _is_elevated_requester(actor: Actor, obj) -> bool:
    from hc_core.patients.models import RequesterLink

    pid = _patient_id_of(obj)
    if pid is None:
        return False
    return (
        RequesterLink.objects.filter(patient_id=pid)
        .filter(_link_q(actor))
        .filter(Q(is_primary=True) | Q(is_secondary=True))
        .exists()
    )


def _is_linked_requester(actor: Actor, obj) -> bool:
    from hc_core.patients.models import RequesterLink

    pid = _patient_id_of(obj)
    if pid is None:
        return False
    return RequesterLink.objects.filter(patient_id=pid).filter(_link_q(actor)).exists()


RELATION_CHECKS: Dict[Relation, Callable[[Actor, object], bool]] = {
    Relation.ASSIGNED_CAREGIVER: _is_assigned_caregiver,
    Relation.REQUEST_OWNER: _is_request_owner,
    Relation.ELEVATED_REQUESTER: _is_elevated_requester,
    Relation.LINKED_REQUESTER: _is_linked_requester,
}


# -----------------------------
# Public checks
# -----------------------------

def grant_for(resource: Resource, operation: Operation) -> Grant:
    # Unknown pairs deny everything
    return PERMISSION_MATRIX.get((resource, operation), Grant())


def is_allowed(actor: Optional[Actor], resource: Resource, operation: Operation, obj=None) -> bool:
    grant = grant_for(resource, operation)

    if actor is None:
        return False

    if not actor.is_registered:
        return grant.allow_guest

    if has_role(actor.roles, grant.roles):
        return True

    if obj is None:
        return False

    return any(RELATION_CHECKS[rel](actor, obj) for rel in grant.relations)


def has_broad_access(actor: Optional[Actor], resource: Resource) -> bool:
    """Role-only VIEW grant (decides NotFound vs Forbidden)."""
    if actor is None or not actor.is_registered:
        return False
    return has_role(actor.roles, grant_for(resource, Operation.VIEW).roles)


def authorize(actor: Optional[Actor], resource: Resource, operation: Operation, obj=None) -> Actor:
    if actor is None:
        raise Unauthenticated()

    if not is_allowed(actor, resource, operation, obj):
        logger.info(
            "Denied %s %s actor_user_id=%s obj_id=%s",
            operation.value,
            resource.value,
            actor.user_id,
            getattr(obj, "pk", None),
        )
        raise Forbidden()

    return actor


def missing(actor: Optional[Actor], resource: Resource, message: str):
    """
    Exception for an absent entity: staff see NotFound, everyone else the
    same Forbidden they would get for an entity that is not theirs.
    """
    if actor is None:
        return Unauthenticated()
    if has_broad_access(actor, resource):
        return EntityNotFound(message)
    return Forbidden()


# -----------------------------
# DRF permission
# -----------------------------

class MatrixPermission(BasePermission):
    """
    Role-only pre-check driven by the matrix.

    Views declare:
      matrix_resource = Resource.X
      matrix_actions = {"list": Operation.LIST, ...}

    Relation grants cannot be evaluated before lookup, so an operation that
    has any relation passes here and the service authorizes against the object.
    """
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view) -> bool:
        resource = getattr(view, "matrix_resource", None)
        operation = (getattr(view, "matrix_actions", None) or {}).get(getattr(view, "action", None))
        if resource is None or operation is None:
            return False

        grant = grant_for(resource, operation)
        actor = identify(request)

        if actor is None:
            if grant.allow_guest:
                return True
            raise Unauthenticated()

        if has_role(actor.roles, grant.roles):
            return True

        return bool(grant.relations)
