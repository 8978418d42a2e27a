import json
import logging
from sqlalchemy.orm import Session
from roms.models.core import AuditLog

logger = logging.getLogger("roms.audit")

def audit(db: Session, actor_user_id: str | None, entity: str, entity_id: str,
          action: str, before: dict | None = None, after: dict | None = None, reason: str | None = None):
    entry = AuditLog(
        actor_user_id=actor_user_id,
        entity=entity, entity_id=entity_id,
        action=action if not reason else f"{action}:{reason}"[:80],
        before=json.dumps(before, default=str) if before else None,
        after=json.dumps(after, default=str) if after else None,
    )
    db.add(entry)
    logger.info("%s %s %s", entity, entity_id, action, extra={"order_id": entity_id if entity == "Order" else None})
    return entry
