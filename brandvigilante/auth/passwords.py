import logging

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

from brandvigilante.core import config

logger = logging.getLogger(__name__)

_hasher = PasswordHasher(
    time_cost=config.ARGON2_TIME_COST,
    memory_cost=config.ARGON2_MEMORY_COST,
    parallelism=config.ARGON2_PARALLELISM,
    type=Type.ID,
)


def hash_password(plaintext: str) -> str:
    """Return an encoded argon2id hash; salt and parameters live inside the string."""
    return _hasher.hash(plaintext)


def verify_password(hashed: str | None, candidate: str | None) -> bool:
    if not hashed or not hashed.strip() or not candidate or not candidate.strip():
        return False

    try:
        return _hasher.verify(hashed, candidate)
    except VerificationError:
        return False
    except InvalidHashError:
        logger.warning('Stored password hash could not be parsed')
        return False
