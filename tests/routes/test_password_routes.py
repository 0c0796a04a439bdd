from datetime import timedelta

from brandvigilante.auth.passwords import verify_password
from brandvigilante.auth.sessions import create_session, resolve_session
from brandvigilante.auth.tokens import create_password_reset_token, validate_password_reset_token
from brandvigilante.database import utcnow
from brandvigilante.models.token import PasswordResetToken
from brandvigilante.routes.password_routes import FORGOT_PASSWORD_MESSAGE, INVALID_RESET_TOKEN_MESSAGE

NEW_PASSWORD = 'Newpass12!'


def _age_token(db, token: str, hours: int) -> None:
    row = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).one()
    row.created_at = utcnow() - timedelta(hours=hours)
    row.expires_at = row.created_at + timedelta(hours=24)
    db.commit()


def test_forgot_password_for_unknown_email_returns_generic_message(client, outbox) -> None:
    response = client.post('/forgot-password', json={'email': 'ghost@janusipm.com'})

    assert response.status_code == 200
    assert response.json() == {'success': True, 'message': FORGOT_PASSWORD_MESSAGE}
    assert outbox == []


def test_forgot_password_sends_reset_link(client, db, make_user, outbox) -> None:
    user = make_user(email='ada@janusipm.com')

    response = client.post('/forgot-password', json={'email': 'ADA@janusipm.com'})

    assert response.json()['message'] == FORGOT_PASSWORD_MESSAGE
    token = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).one()
    assert outbox[0]['to'] == 'ada@janusipm.com'
    assert f'/reset-password?token={token.token}' in outbox[0]['html']


def test_forgot_password_replaces_previous_token(client, db, make_user) -> None:
    user = make_user()
    first = create_password_reset_token(db, user.id)

    client.post('/forgot-password', json={'email': user.email})

    db.expire_all()
    tokens = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).all()
    assert len(tokens) == 1
    assert tokens[0].token != first


def test_forgot_password_reports_send_failure(client, make_user, monkeypatch) -> None:
    make_user(email='ada@janusipm.com')
    monkeypatch.setattr('brandvigilante.routes.password_routes.send_password_reset_email', lambda to, token: False)

    response = client.post('/forgot-password', json={'email': 'ada@janusipm.com'})

    assert response.status_code == 500
    assert response.json()['code'] == 'EMAIL_SEND_FAILED'


def test_reset_password_page_redirects_without_token(client) -> None:
    response = client.get('/reset-password', follow_redirects=False)

    assert response.status_code == 302
    assert response.headers['location'] == '/forgot-password'


def test_reset_password_page_redirects_for_unknown_token(client) -> None:
    response = client.get('/reset-password', params={'token': 'nope'}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers['location'] == '/forgot-password?error=invalid_token'


def test_reset_password_page_accepts_live_token(client, db, make_user) -> None:
    token = create_password_reset_token(db, make_user().id)

    response = client.get('/reset-password', params={'token': token})

    assert response.status_code == 200
    assert response.json() == {'token': token}


def test_forgot_password_page_shows_invalid_token_message(client) -> None:
    response = client.get('/forgot-password', params={'error': 'invalid_token'})

    assert response.json() == {'error': INVALID_RESET_TOKEN_MESSAGE}


def test_reset_password_updates_hash_and_revokes_sessions(client, db, make_user) -> None:
    user = make_user()
    session = create_session(db, user.id)
    token = create_password_reset_token(db, user.id)

    response = client.post('/reset-password', json={
        'token': token,
        'password': NEW_PASSWORD,
        'confirm_password': NEW_PASSWORD,
    })

    assert response.status_code == 200
    assert response.json()['success'] is True
    db.refresh(user)
    assert verify_password(user.hashed_password, NEW_PASSWORD)
    assert validate_password_reset_token(db, token) is None
    assert resolve_session(db, session.id) is None


def test_token_older_than_a_day_is_rejected_and_password_kept(client, db, make_user) -> None:
    user = make_user()
    original_hash = user.hashed_password
    token = create_password_reset_token(db, user.id)
    _age_token(db, token, hours=25)

    assert validate_password_reset_token(db, token) is None

    response = client.post('/reset-password', json={
        'token': token,
        'password': NEW_PASSWORD,
        'confirm_password': NEW_PASSWORD,
    })

    assert response.status_code == 400
    assert response.json() == {'error': INVALID_RESET_TOKEN_MESSAGE, 'code': 'INVALID_TOKEN'}
    db.refresh(user)
    assert user.hashed_password == original_hash


def test_reset_password_requires_matching_confirmation(client, db, make_user) -> None:
    token = create_password_reset_token(db, make_user().id)

    response = client.post('/reset-password', json={
        'token': token,
        'password': NEW_PASSWORD,
        'confirm_password': 'Different12!',
    })

    assert response.status_code == 400
    assert response.json()['field_errors']['__root__'] == ['Passwords do not match']


def test_reset_password_requires_special_character(client, db, make_user) -> None:
    token = create_password_reset_token(db, make_user().id)

    response = client.post('/reset-password', json={
        'token': token,
        'password': 'Newpass12',
        'confirm_password': 'Newpass12',
    })

    assert response.status_code == 400
    assert response.json()['field_errors']['password'] == ['Password must contain at least one special character']
