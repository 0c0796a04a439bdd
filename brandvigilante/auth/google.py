"""Google sign-in over the OAuth 2.0 authorization-code flow with PKCE."""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

import requests

from brandvigilante.core import config

logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = 'google_oauth_state'
CODE_VERIFIER_COOKIE_NAME = 'google_code_verifier'
SCOPES = ('openid', 'email', 'profile')


class GoogleOAuthError(Exception):
    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


@dataclass
class GoogleUserInfo:
    sub: str
    email: str
    given_name: str = ''
    family_name: str = ''
    email_verified: bool = False


def _urlsafe_random(num_bytes: int = 32) -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(num_bytes)).rstrip(b'=').decode('ascii')


def generate_state() -> str:
    return _urlsafe_random()


def generate_code_verifier() -> str:
    return _urlsafe_random()


def code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str = config.GOOGLE_CLIENT_ID,
        client_secret: str = config.GOOGLE_CLIENT_SECRET,
        redirect_uri: str = config.GOOGLE_REDIRECT_URI,
        *,
        http: requests.Session | None = None,
        timeout: float = config.GOOGLE_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.http = http or requests.Session()
        self.timeout = timeout

    def create_authorization_url(self, state: str, code_verifier: str, scopes=SCOPES) -> str:
        params = {
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
            'response_type': 'code',
            'scope': ' '.join(scopes),
            'state': state,
            'code_challenge': code_challenge(code_verifier),
            'code_challenge_method': 'S256',
        }
        return f'{config.GOOGLE_AUTH_URI}?{urlencode(params)}'

    def exchange_code(self, code: str, code_verifier: str) -> str:
        """Trade the authorization code for an access token."""
        data = {
            'code': code,
            'code_verifier': code_verifier,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'redirect_uri': self.redirect_uri,
            'grant_type': 'authorization_code',
        }
        try:
            response = self.http.post(config.GOOGLE_TOKEN_URI, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise GoogleOAuthError('Token endpoint unreachable', stage='token') from exc

        if response.status_code != 200:
            logger.error('Google token exchange failed with status %s', response.status_code)
            raise GoogleOAuthError('Token exchange failed', stage='token')

        access_token = response.json().get('access_token')
        if not access_token:
            raise GoogleOAuthError('Token response carried no access token', stage='token')
        return access_token

    def fetch_user_info(self, access_token: str) -> GoogleUserInfo:
        try:
            response = self.http.get(
                config.GOOGLE_USERINFO_URI,
                headers={'Authorization': f'Bearer {access_token}'},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GoogleOAuthError('Userinfo endpoint unreachable', stage='userinfo') from exc

        if response.status_code != 200:
            logger.error('Google userinfo request failed with status %s', response.status_code)
            raise GoogleOAuthError('Userinfo request failed', stage='userinfo')

        payload = response.json()
        if not payload.get('sub') or not payload.get('email'):
            raise GoogleOAuthError('Userinfo response is missing sub or email', stage='userinfo')

        return GoogleUserInfo(
            sub=str(payload['sub']),
            email=payload['email'].strip().lower(),
            given_name=payload.get('given_name') or '',
            family_name=payload.get('family_name') or '',
            email_verified=bool(payload.get('email_verified')),
        )


def get_google_client() -> GoogleOAuthClient:
    return GoogleOAuthClient()
