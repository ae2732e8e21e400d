import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio


async def test_login_returns_token_and_user(async_client: AsyncClient, viewer_user):
    response = await async_client.post(
        "/api/users/token", json={"email": viewer_user["email"], "password": viewer_user["password"]}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == viewer_user["email"]
    assert "passwordHash" not in body["user"]

    me = await async_client.get(
        "/api/users/me", headers={"Authorization": f"Bearer {body['access_token']}"}
    )
    assert me.json()["name"] == "Ana"


async def test_login_wrong_password(async_client: AsyncClient, viewer_user):
    response = await async_client.post(
        "/api/users/token", json={"email": viewer_user["email"], "password": "errada"}
    )
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_inactive_user_cannot_login(async_client: AsyncClient, make_user):
    user = await make_user("Inativo", "inativo@example.net", "VIEWER", status="INACTIVE")
    response = await async_client.post(
        "/api/users/token", json={"email": user["email"], "password": user["password"]}
    )
    assert response.status_code == 401


async def test_invalid_token(async_client: AsyncClient, db):
    response = await async_client.get("/api/users/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test_admin_manages_users(async_client: AsyncClient, admin_headers):
    created = await async_client.post(
        "/api/users",
        json={"name": "Bruno", "email": "bruno@example.net", "password": "1234567890", "role": "MANAGER"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    user = created.json()
    assert user["role"] == "MANAGER"

    duplicate = await async_client.post(
        "/api/users",
        json={"name": "Outro", "email": "bruno@example.net", "password": "x"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 400

    searched = await async_client.get("/api/users", params={"q": "brun"}, headers=admin_headers)
    assert [u["email"] for u in searched.json()] == ["bruno@example.net"]

    updated = await async_client.put(
        f"/api/users/{user['id']}", json={"status": "INACTIVE"}, headers=admin_headers
    )
    assert updated.json()["status"] == "INACTIVE"

    deleted = await async_client.delete(f"/api/users/{user['id']}", headers=admin_headers)
    assert deleted.status_code == 204


async def test_viewer_cannot_list_users(async_client: AsyncClient, viewer_headers):
    response = await async_client.get("/api/users", headers=viewer_headers)
    assert response.status_code == 403


async def test_self_update_cannot_change_role(async_client: AsyncClient, viewer_user, viewer_headers):
    renamed = await async_client.put(
        f"/api/users/{viewer_user['id']}", json={"name": "Ana Maria"}, headers=viewer_headers
    )
    promoted = await async_client.put(
        f"/api/users/{viewer_user['id']}", json={"role": "ADMIN"}, headers=viewer_headers
    )

    assert renamed.json()["name"] == "Ana Maria"
    assert promoted.status_code == 403


async def test_generate_password(async_client: AsyncClient, admin_headers):
    response = await async_client.post("/api/users/generate-password", headers=admin_headers)
    password = response.json()["password"]
    assert len(password) == 10
    assert password.isdigit()


async def test_user_responses_and_my_forms(
    async_client: AsyncClient, admin_headers, viewer_user, viewer_headers, manager_user
):
    form_body = {
        "title": "Clima",
        "allowedDirectorates": ["DTI"],
        "publish": True,
        "fields": [{"id": "temp-1", "type": "NUMBER", "label": "Nota"}],
    }
    created = await async_client.post(
        "/api/forms/builder", json=form_body, headers=admin_headers, params={"directorate": "DPE"}
    )
    form = created.json()
    await async_client.post(
        f"/api/forms/{form['id']}/responses",
        json={"status": "DRAFT", "answers": [{"fieldId": form["fields"][0]["id"], "value": "8"}]},
        headers=viewer_headers,
    )

    mine = await async_client.get(
        f"/api/users/{viewer_user['id']}/responses", params={"directorate": "DPE"}, headers=viewer_headers
    )
    other_directorate = await async_client.get(
        f"/api/users/{viewer_user['id']}/responses", params={"directorate": "DTI"}, headers=viewer_headers
    )
    someone_else = await async_client.get(
        f"/api/users/{manager_user['id']}/responses", headers=viewer_headers
    )
    my_forms = await async_client.get(
        "/api/users/me/forms", params={"directorate": "DTI"}, headers=viewer_headers
    )
    hidden = await async_client.get(
        "/api/users/me/forms", params={"directorate": "DIJUD"}, headers=viewer_headers
    )

    assert mine.json()[0]["answers"][0]["value"] == 8
    assert other_directorate.json() == []
    assert someone_else.status_code == 403
    assert [(f["title"], f["responseStatus"]) for f in my_forms.json()] == [("Clima", "IN_PROGRESS")]
    assert hidden.json() == []


async def test_directorates(async_client: AsyncClient):
    response = await async_client.get("/api/directorates")
    assert [d["value"] for d in response.json()] == ["DIJUD", "DPE", "DTI", "DSTI", "SGJT"]
