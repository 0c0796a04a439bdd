from fastapi import Depends, Request

from brandvigilante.auth.sessions import UserContext
from brandvigilante.core.errors import AuthenticationError, AuthorizationError, RedirectRequired


def get_current_user(request: Request) -> UserContext | None:
    return getattr(request.state, 'user', None)


def require_user_page(user: UserContext | None = Depends(get_current_user)) -> UserContext:
    if user is None:
        raise RedirectRequired('/sign-in')
    return user


def require_user_api(user: UserContext | None = Depends(get_current_user)) -> UserContext:
    if user is None:
        raise AuthenticationError('Authentication required', code='UNAUTHENTICATED')
    return user


def require_admin_page(user: UserContext | None = Depends(get_current_user)) -> UserContext:
    if user is None:
        raise RedirectRequired('/sign-in')
    if not user.is_admin:
        raise RedirectRequired('/dashboard')
    return user


def require_admin_api(user: UserContext = Depends(require_user_api)) -> UserContext:
    if not user.is_admin:
        raise AuthorizationError('Admin access required', code='FORBIDDEN')
    return user


def redirect_signed_in(user: UserContext | None = Depends(get_current_user)) -> None:
    """Guest-only pages send signed-in users to their dashboard."""
    if user is not None:
        raise RedirectRequired('/dashboard')
