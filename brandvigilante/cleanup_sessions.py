"""Delete expired sessions and tokens.

Usage: python -m brandvigilante.cleanup_sessions
"""

import logging

from brandvigilante import database
from brandvigilante.auth.sessions import delete_expired_sessions
from brandvigilante.auth.tokens import delete_expired_tokens

logger = logging.getLogger(__name__)


def cleanup_expired() -> dict[str, int]:
    db = database.SessionLocal()
    try:
        sessions = delete_expired_sessions(db)
        reset_tokens, verification_tokens = delete_expired_tokens(db)
    finally:
        db.close()

    counts = {
        'sessions': sessions,
        'password_reset_tokens': reset_tokens,
        'verification_tokens': verification_tokens,
    }
    logger.info('Expired cleanup removed %s', counts)
    return counts


def main() -> None:
    counts = cleanup_expired()
    for name, count in counts.items():
        print(f'{name}: {count} deleted')


if __name__ == '__main__':
    main()
