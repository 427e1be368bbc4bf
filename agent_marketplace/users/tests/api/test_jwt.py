import pytest
from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


def obtain_tokens(client, username: str, password: str) -> tuple[str, str]:
    r = client.post(
        "/api/v1/auth/jwt/create/",
        {"username": username, "password": password},
        format="json",
    )
    assert r.status_code == status.HTTP_200_OK, r.content
    return r.data["access"], r.data["refresh"]


@pytest.fixture
def verify_user():
    return get_user_model().objects.create_user(
        username="verifyuser",
        email="verify@example.com",
        password="VerifyPass!123",  # noqa: S106
    )


def test_jwt_verify_endpoint(verify_user):
    client = APIClient()
    access, _ = obtain_tokens(client, "verifyuser", "VerifyPass!123")

    r = client.post("/api/v1/auth/jwt/verify/", {"token": access}, format="json")
    assert r.status_code == status.HTTP_200_OK

    bad = access[:-2] + "ab"
    r = client.post("/api/v1/auth/jwt/verify/", {"token": bad}, format="json")
    assert r.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_with_email_and_refresh(verify_user):
    client = APIClient()
    _, refresh = obtain_tokens(client, "verify@example.com", "VerifyPass!123")

    r = client.post("/api/v1/auth/jwt/refresh/", {"refresh": refresh}, format="json")
    assert r.status_code == status.HTTP_200_OK
    assert "access" in r.data


def test_access_token_authenticates_api(verify_user):
    client = APIClient()
    access, _ = obtain_tokens(client, "verifyuser", "VerifyPass!123")
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

    r = client.get("/api/v1/users/me/")
    assert r.status_code == status.HTTP_200_OK
    assert r.data["username"] == "verifyuser"
    assert r.data["role"] == "BUYER"
