def test_register_and_login(client):
    res = client.post("/api/auth/register", json={"username": "Op@Example.com ", "password": "secret"})
    assert res.status_code == 201
    body = res.get_json()
    assert body["username"] == "op@example.com"
    assert body["role"] == "operator"

    res = client.post("/api/auth/login", json={"username": "op@example.com", "password": "secret"})
    assert res.status_code == 200
    data = res.get_json()
    assert data["token"]
    assert data["user"]["username"] == "op@example.com"


def test_register_requires_credentials(client):
    res = client.post("/api/auth/register", json={"username": "nobody@example.com"})
    assert res.status_code == 400
    assert res.get_json()["error"] == "bad_request"


def test_register_rejects_unknown_role(client):
    res = client.post("/api/auth/register", json={"username": "x@example.com", "password": "pw", "role": "root"})
    assert res.status_code == 400


def test_duplicate_username_conflicts(client):
    client.post("/api/auth/register", json={"username": "dup@example.com", "password": "pw"})
    res = client.post("/api/auth/register", json={"username": "dup@example.com", "password": "pw"})
    assert res.status_code == 409


def test_customer_registration_creates_customer(client, database):
    res = client.post(
        "/api/auth/register",
        json={"username": "cust@example.com", "password": "pw", "role": "customer", "firstName": "Cee", "mobile": "777"},
    )
    assert res.status_code == 201
    customer = database["customers"].find_one({"email": "cust@example.com"})
    assert customer is not None
    assert customer["mobile"] == "777"
    assert str(customer["userId"]) == res.get_json()["id"]


def test_customer_registration_rolls_back_on_duplicate_mobile(client, database):
    client.post("/api/auth/register", json={"username": "a@example.com", "password": "pw", "role": "customer", "mobile": "123"})
    res = client.post("/api/auth/register", json={"username": "b@example.com", "password": "pw", "role": "customer", "mobile": "123"})
    assert res.status_code == 409
    assert database["users"].find_one({"username": "b@example.com"}) is None


def test_login_with_wrong_password(client):
    client.post("/api/auth/register", json={"username": "me@example.com", "password": "right"})
    res = client.post("/api/auth/login", json={"username": "me@example.com", "password": "wrong"})
    assert res.status_code == 401
    assert res.get_json()["error"] == "unauthorized"


def test_me_requires_token(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401


def test_me_rejects_garbage_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_me_returns_profile_without_hash(client, operator_headers):
    res = client.get("/api/auth/me", headers=operator_headers)
    assert res.status_code == 200
    body = res.get_json()
    assert body["username"] == "operator@example.com"
    assert "passwordHash" not in body


def test_logout(client):
    res = client.post("/api/auth/logout")
    assert res.status_code == 200


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "ok"}
