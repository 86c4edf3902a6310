from retailhub.utils.token_crypto import hash_secret


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_login_and_check(client, profile_factory):
    profile_factory("shop@example.com", password_hash=hash_secret("geheim123"))

    r = _login(client, "Shop@Example.com", "geheim123")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["token"].startswith("rh_sess_")
    assert body["profile"]["email"] == "shop@example.com"
    assert body["profile"]["last_login_at"] is not None

    r = client.get("/api/auth/check", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200
    assert r.json()["authenticated"] is True
    assert r.json()["isAdmin"] is False


def test_login_rejects_wrong_password(client, profile_factory):
    profile_factory("shop@example.com", password_hash=hash_secret("geheim123"))
    r = _login(client, "shop@example.com", "verkeerd1")
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid email or password"}

    r = _login(client, "nobody@example.com", "geheim123")
    assert r.status_code == 401


def test_login_requires_both_fields(client):
    r = client.post("/api/auth/login", json={"email": "shop@example.com"})
    assert r.status_code == 400
    assert r.json()["error"] == "Email and password are required"


def test_suspended_profile_cannot_login(client, profile_factory):
    profile_factory("old@example.com", status="suspended", password_hash=hash_secret("geheim123"))
    r = _login(client, "old@example.com", "geheim123")
    assert r.status_code == 403
    assert r.json()["error"] == "Account suspended"


def test_check_requires_authentication(client):
    r = client.get("/api/auth/check")
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}

    r = client.get("/api/auth/check", headers={"Authorization": "Bearer rh_sess_abc_def"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session"}


def test_dev_mode_resolves_development_admin(client, monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    r = client.get("/api/auth/check")
    assert r.status_code == 200
    assert r.json()["isAdmin"] is True
    assert r.json()["profile"]["email"] == "dev@localhost"


def test_admin_emails_grant_admin(client, retailer_headers, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "winkel@example.com")
    r = client.get("/api/auth/check", headers=retailer_headers)
    assert r.json()["isAdmin"] is True


def test_logout_revokes_session(client, retailer_headers):
    r = client.post("/api/auth/logout", headers=retailer_headers)
    assert r.status_code == 200
    r = client.get("/api/auth/check", headers=retailer_headers)
    assert r.status_code == 401


def test_create_admin_bootstrap_then_requires_admin(client, retailer_headers):
    payload = {"email": "beheer@retailhub.test", "password": "supergeheim", "fullName": "Beheer"}
    r = client.post("/api/auth/create-admin", json=payload)
    assert r.status_code == 201
    assert r.json()["profile"]["role"] == "admin"

    second = {"email": "tweede@retailhub.test", "password": "supergeheim"}
    r = client.post("/api/auth/create-admin", json=second)
    assert r.status_code == 401

    r = client.post("/api/auth/create-admin", json=second, headers=retailer_headers)
    assert r.status_code == 403

    r = _login(client, "beheer@retailhub.test", "supergeheim")
    token = r.json()["token"]
    r = client.post("/api/auth/create-admin", json=payload, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 409


def test_create_admin_validates_input(client):
    r = client.post("/api/auth/create-admin", json={"email": "nope", "password": "supergeheim"})
    assert r.status_code == 400
    r = client.post("/api/auth/create-admin", json={"email": "a@b.nl", "password": "kort"})
    assert r.status_code == 400
    assert "at least 8" in r.json()["error"]


def test_update_password(client, profile_factory, auth_headers_for):
    profile = profile_factory("shop@example.com", password_hash=hash_secret("geheim123"))
    headers = auth_headers_for(profile)

    r = client.post("/api/auth/update-password", json={"currentPassword": "fout", "newPassword": "nieuwwachtwoord"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Current password is incorrect"

    r = client.post("/api/auth/update-password", json={"currentPassword": "geheim123", "newPassword": "kort"}, headers=headers)
    assert r.status_code == 400

    r = client.post("/api/auth/update-password", json={"currentPassword": "geheim123", "newPassword": "nieuwwachtwoord"}, headers=headers)
    assert r.status_code == 200
    assert _login(client, "shop@example.com", "nieuwwachtwoord").status_code == 200


def test_profile_get_and_update(client, retailer_headers):
    r = client.get("/api/profile", headers=retailer_headers)
    assert r.status_code == 200
    assert r.json()["company_name"] == "Winkel de Vries"

    r = client.put("/api/profile", json={"companyName": "Winkel & Zn", "city": "Amersfoort"}, headers=retailer_headers)
    assert r.status_code == 200
    assert r.json()["profile"]["company_name"] == "Winkel & Zn"
    assert r.json()["profile"]["city"] == "Amersfoort"
    assert r.json()["profile"]["role"] == "retailer"
