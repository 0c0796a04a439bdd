from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from brandvigilante.core.cache import cache
from brandvigilante.core.errors import ConflictError, NotFoundError

ModelT = TypeVar('ModelT')

ADMIN_STATS_CACHE_KEY = 'admin:stats'


def get_or_404(db: Session, model: type[ModelT], object_id: int, label: str) -> ModelT:
    instance = db.get(model, object_id)
    if instance is None:
        raise NotFoundError(f'{label} not found')
    return instance


def commit_or_conflict(db: Session, message: str, code: str = 'CONFLICT') -> None:
    """Commit, turning a constraint violation into a 409."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(message, code=code) from exc


def invalidate_admin_stats() -> None:
    cache.delete(ADMIN_STATS_CACHE_KEY)
