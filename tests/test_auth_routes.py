import pytest


def _login(client, user, target):
    return client.post(
        "/login",
        query_string={"next": target},
        data={"email": user.email, "password": "password123"},
    )


@pytest.mark.parametrize("target", ["/\\evil.com", "//evil.com", "https://evil.com/novels", "dashboard"])
def test_login_ignores_offsite_next(client, user, target):
    response = _login(client, user, target)

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")


def test_login_follows_local_next(client, user):
    response = _login(client, user, "/novels/new")

    assert response.status_code == 302
    assert response.headers["Location"].endswith("/novels/new")


def test_wrong_password_stays_on_login(client, user):
    response = client.post("/login", data={"email": user.email, "password": "nope"})

    assert response.status_code == 200
    assert b"Invalid email or password." in response.data
