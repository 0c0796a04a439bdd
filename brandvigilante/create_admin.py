"""Create an admin account, or promote an existing user.

Usage: python -m brandvigilante.create_admin EMAIL PASSWORD
"""

import argparse

from sqlalchemy.orm import Session

from brandvigilante import database
from brandvigilante.auth.passwords import hash_password
from brandvigilante.models.user import User
from brandvigilante.schemas import PASSWORD_MIN_LENGTH, normalize_email


def create_or_promote_admin(db: Session, email: str, password: str) -> tuple[User, bool]:
    email = normalize_email(email)
    user = db.query(User).filter(User.email == email).first()
    created = user is None

    if created:
        user = User(email=email, first_name='', last_name='', email_verified=True)
        db.add(user)

    user.role = 'admin'
    user.hashed_password = hash_password(password)
    db.commit()
    db.refresh(user)
    return user, created


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description='Create or promote an admin account.')
    parser.add_argument('email')
    parser.add_argument('password')
    args = parser.parse_args(argv)

    if len(args.password) < PASSWORD_MIN_LENGTH:
        parser.error(f'password must be at least {PASSWORD_MIN_LENGTH} characters')

    database.Base.metadata.create_all(bind=database.engine, tables=[User.__table__])
    db = database.SessionLocal()
    try:
        user, created = create_or_promote_admin(db, args.email, args.password)
    finally:
        db.close()

    action = 'Created' if created else 'Promoted'
    print(f'{action} admin {user.email} (id {user.id})')


if __name__ == '__main__':
    main()
