from fastapi.testclient import TestClient

from boxoffice.main import app

client = TestClient(app)


def user_data(**overrides):
    data = {
        "name": "Jordan Lee",
        "username": "jlee",
        "email": "jlee@cofc.edu",
    }
    data.update(overrides)
    return data


def test_create_buyer_with_default_discount():
    response = client.post("/users", json=user_data())

    assert response.status_code == 201
    user = response.json()
    assert user["id"].startswith("usr_")
    assert user["role"] == "buyer"
    assert user["discount"] == "0.10"
    assert user["specialAccommodations"]["facultyRestricted"] is False


def test_create_faculty_buyer():
    response = client.post("/users", json=user_data(
        discount=0, specialAccommodations={"hasAccommodations": True, "facultyRestricted": True},
    ))

    assert response.status_code == 201
    assert response.json()["discount"] == "0"
    assert response.json()["specialAccommodations"]["facultyRestricted"] is True


def test_staff_never_get_a_discount():
    response = client.post("/users", json=user_data(role="enforcer", discount=0.5))

    assert response.status_code == 201
    assert response.json()["discount"] == "0"


def test_duplicate_username_or_email():
    assert client.post("/users", json=user_data()).status_code == 201

    assert client.post("/users", json=user_data(email="other@cofc.edu")).status_code == 409
    assert client.post("/users", json=user_data(username="other", email="JLEE@cofc.edu")).status_code == 409


def test_create_user_validation():
    assert client.post("/users", json=user_data(email="nope")).status_code == 400
    assert client.post("/users", json=user_data(role="superuser")).status_code == 422
    assert client.post("/users", json=user_data(discount=1.5)).status_code == 422
    assert client.post("/users", json={"name": "No Username"}).status_code == 422


def test_get_user():
    response = client.get("/users/student001")

    assert response.status_code == 200
    assert response.json()["name"] == "Emily Rodriguez"
    assert response.json()["discount"] == "0.10"


def test_get_nonexistent_user():
    assert client.get("/users/usr_missing").status_code == 404


def test_admin_lists_users():
    created = client.post("/users", json=user_data()).json()

    response = client.get("/admin/users", headers={"X-User-Id": "admin001"})

    assert response.status_code == 200
    ids = [u["id"] for u in response.json()]
    assert len(ids) == 4
    assert created["id"] in ids


def test_list_users_requires_admin():
    assert client.get("/admin/users").status_code == 401
    assert client.get("/admin/users", headers={"X-User-Id": "enforcer001"}).status_code == 403


def test_health():
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"]["storage"] == "in-memory"
    assert data["storage"]["events"] == 6
