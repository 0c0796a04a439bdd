import json

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from brandvigilante.core.errors import (
    AppError,
    ConflictError,
    NotFoundError,
    RedirectRequired,
    error_body,
    register_exception_handlers,
)


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get('/conflict')
    def conflict():
        raise ConflictError('Already exists', code='DUPLICATE_TERM')

    @app.get('/missing')
    def missing():
        raise NotFoundError()

    @app.get('/redirect')
    def redirect():
        raise RedirectRequired('/sign-in')

    @app.get('/offline')
    def offline():
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    @app.get('/integrity')
    def integrity():
        raise IntegrityError('INSERT', {}, Exception('duplicate key'))

    @app.get('/typed/{item_id}')
    def typed(item_id: int):
        return {'item_id': item_id}

    return app


def test_error_body_merges_details() -> None:
    assert error_body('Bad', 'X') == {'error': 'Bad', 'code': 'X'}
    assert error_body('Bad', 'X', {'field_errors': {'a': ['b']}}) == {
        'error': 'Bad',
        'code': 'X',
        'field_errors': {'a': ['b']},
    }


def test_app_error_defaults_and_overrides() -> None:
    error = AppError('Failed to send', code='EMAIL_SEND_FAILED')

    assert error.status_code == 500
    assert error.code == 'EMAIL_SEND_FAILED'
    assert NotFoundError().message == 'Resource not found'


def test_app_errors_render_as_error_and_code() -> None:
    client = TestClient(_app())

    conflict = client.get('/conflict')
    missing = client.get('/missing')

    assert conflict.status_code == 409
    assert conflict.json() == {'error': 'Already exists', 'code': 'DUPLICATE_TERM'}
    assert missing.status_code == 404
    assert missing.json() == {'error': 'Resource not found', 'code': 'NOT_FOUND'}


def test_redirect_required_becomes_302() -> None:
    response = TestClient(_app()).get('/redirect', follow_redirects=False)

    assert response.status_code == 302
    assert response.headers['location'] == '/sign-in'


def test_database_errors_are_classified() -> None:
    client = TestClient(_app())

    offline = client.get('/offline')
    integrity = client.get('/integrity')

    assert offline.status_code == 503
    assert offline.json()['code'] == 'CONNECTION_ERROR'
    assert integrity.status_code == 500
    assert integrity.json()['code'] == 'DATABASE_ERROR'
    assert 'duplicate key' not in json.dumps(integrity.json())


def test_unknown_route_and_bad_params_keep_the_error_shape() -> None:
    client = TestClient(_app())

    unknown = client.get('/nowhere')
    bad_param = client.get('/typed/abc')

    assert unknown.status_code == 404
    assert unknown.json() == {'error': 'Not Found', 'code': 'HTTP_404'}
    assert bad_param.status_code == 400
    assert bad_param.json()['code'] == 'VALIDATION_ERROR'
    assert 'item_id' in bad_param.json()['field_errors']
