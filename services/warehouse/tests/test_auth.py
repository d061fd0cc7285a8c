"""
Tests for token validation and role checks.
"""
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from app.auth import (
    CurrentUser,
    authorize_admin,
    authorize_admin_or_self,
    authorize_rider,
    get_current_user,
)
from app.config import ALGORITHM, SECRET_KEY
from app.exceptions import Unauthorized

from conftest import RIDER_A_ID, RIDER_B_ID, make_token


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_token_claims_become_current_user(rider_a):
    user = get_current_user(bearer(make_token(rider_a)))

    assert user == rider_a
    assert not user.is_admin


def test_token_signed_with_other_secret():
    token = jwt.encode({"sub": "1", "email": "x@example.com", "role": "admin"}, "other-secret", algorithm="HS256")

    with pytest.raises(HTTPException) as exc_info:
        get_current_user(bearer(token))

    assert exc_info.value.status_code == 401


def test_token_missing_role():
    token = jwt.encode({"sub": "1", "email": "x@example.com"}, SECRET_KEY, algorithm=ALGORITHM)

    with pytest.raises(HTTPException):
        get_current_user(bearer(token))


def test_authorize_admin(admin, rider_a):
    authorize_admin(admin)
    with pytest.raises(Unauthorized):
        authorize_admin(rider_a)


def test_authorize_rider(admin, rider_a):
    authorize_rider(rider_a, RIDER_A_ID)
    with pytest.raises(Unauthorized):
        authorize_rider(rider_a, RIDER_B_ID)
    with pytest.raises(Unauthorized):
        authorize_rider(admin, RIDER_A_ID)


def test_authorize_admin_or_self(admin, rider_a):
    authorize_admin_or_self(admin, RIDER_B_ID)
    authorize_admin_or_self(rider_a, RIDER_A_ID)
    with pytest.raises(Unauthorized):
        authorize_admin_or_self(rider_a, RIDER_B_ID)


def test_unknown_role_is_neither_admin_nor_rider():
    user = CurrentUser(id=RIDER_A_ID, email="user@example.com", role="user")

    with pytest.raises(Unauthorized):
        authorize_admin(user)
    with pytest.raises(Unauthorized):
        authorize_rider(user, RIDER_A_ID)
