# hc_core/audit/services.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import models, transaction

from hc_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """
    Central audit writer for rows that only hold current state
    (patients, requester links, documents). Runs inside the caller's
    transaction, so a rolled-back write leaves no audit trail behind.
    """

    @staticmethod
    def entity_type_of(entity: models.Model) -> str:
        return entity._meta.object_name

    @staticmethod
    @transaction.atomic
    def log(
        *,
        event_code: str,
        entity: models.Model,
        actor_user_id: int | None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        if entity.pk is None:
            raise ValueError("Audit events need a saved entity.")

        event = AuditEvent.objects.create(
            event_code=event_code,
            entity_type=AuditService.entity_type_of(entity),
            entity_id=entity.pk,
            actor_user_id=actor_user_id,
            metadata=metadata or {},
        )
        logger.debug(
            "Audit %s %s#%s actor_user_id=%s",
            event_code,
            event.entity_type,
            event.entity_id,
            actor_user_id,
        )
        return event
