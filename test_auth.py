import pytest
from datetime import timedelta
from jose import jwt

import config
from auth import create_access_token, decode_access_token, require_role
from errors import Unauthenticated, Unauthorized


def test_token_carries_user_id_and_role(make_user):
    user = make_user(role="admin")
    data = decode_access_token(create_access_token(user))
    assert data.user_id == user.id
    assert data.role == "admin"

def test_expired_token_is_rejected(make_user):
    token = create_access_token(make_user(), expires_delta=timedelta(seconds=-5))
    with pytest.raises(Unauthenticated) as exc:
        decode_access_token(token)
    assert exc.value.message == "Token has expired"

def test_token_signed_with_other_key_is_rejected(make_user):
    token = jwt.encode({"sub": make_user().id}, "someone-else", algorithm=config.ALGORITHM)
    with pytest.raises(Unauthenticated):
        decode_access_token(token)

def test_token_without_subject_is_rejected():
    token = jwt.encode({"role": "admin"}, config.SECRET_KEY, algorithm=config.ALGORITHM)
    with pytest.raises(Unauthenticated):
        decode_access_token(token)

def test_require_role_rejects_other_roles(make_user):
    member = make_user()
    checker = require_role("admin")
    with pytest.raises(Unauthorized) as exc:
        checker(current_user=member)
    assert exc.value.status_code == 403
    admin = make_user(role="admin")
    assert checker(current_user=admin) is admin

def test_verify_secret(users):
    user = users.create(
        name="Asha Rao", email=" Asha@College.edu ", password="secret123",
        roll_number="21CS042", branch="CSE", year=3, phone="9876543210",
    )
    assert user.email == "asha@college.edu"
    assert user.password != "secret123"
    assert users.verify_secret(user.id, "secret123")
    assert not users.verify_secret(user.id, "wrong-password")
    assert not users.verify_secret("ghost", "secret123")
    assert "password" not in user.to_public()
