from sqlalchemy.orm import Session

from brandvigilante.models.activity_log import ENTITY_TYPES, ActivityLog


def record_activity(
    db: Session,
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    user_id: int | None = None,
    details: str | None = None,
) -> ActivityLog:
    """Stage an audit row in the caller's transaction; the caller commits."""
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f'Unknown activity entity type: {entity_type}')

    entry = ActivityLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details,
        user_id=user_id,
    )
    db.add(entry)
    return entry


def list_activity(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 50,
) -> list[ActivityLog]:
    query = db.query(ActivityLog)
    if entity_type is not None:
        query = query.filter(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
