import pytest

from brandvigilante.auth.passwords import hash_password, verify_password


def test_hash_password_produces_argon2id_hash() -> None:
    hashed = hash_password('Abcdef12!')

    assert hashed.startswith('$argon2id$')
    assert 'Abcdef12!' not in hashed


def test_hash_password_salts_every_hash() -> None:
    assert hash_password('Abcdef12!') != hash_password('Abcdef12!')


def test_verify_password_accepts_matching_password() -> None:
    hashed = hash_password('Abcdef12!')

    assert verify_password(hashed, 'Abcdef12!') is True


def test_verify_password_rejects_wrong_password() -> None:
    hashed = hash_password('Abcdef12!')

    assert verify_password(hashed, 'Abcdef12?') is False


@pytest.mark.parametrize('candidate', ['', '   ', None])
def test_verify_password_rejects_blank_candidates(candidate) -> None:
    hashed = hash_password('Abcdef12!')

    assert verify_password(hashed, candidate) is False


def test_verify_password_returns_false_for_corrupt_hash() -> None:
    assert verify_password('not-a-real-hash', 'Abcdef12!') is False


def test_verify_password_returns_false_without_stored_hash() -> None:
    assert verify_password(None, 'Abcdef12!') is False
