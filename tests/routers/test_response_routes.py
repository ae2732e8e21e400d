import pytest
from httpx import AsyncClient

from gestaoapi.security import create_access_token

pytestmark = pytest.mark.anyio

OPTIONS = [
    {"id": "o1", "label": "Opção A", "value": "optA"},
    {"id": "o2", "label": "Opção B", "value": "optB"},
]


@pytest.fixture()
async def form(async_client: AsyncClient, admin_headers) -> dict:
    payload = {
        "title": "Pesquisa de Satisfação",
        "allowedDirectorates": ["ALL"],
        "publish": True,
        "sections": [],
        "fields": [
            {"id": "temp-1", "type": "SHORT_TEXT", "label": "Nome", "required": True, "order": 0},
            {
                "id": "temp-2",
                "type": "CHECKBOXES",
                "label": "Preferências",
                "order": 1,
                "config": {"options": OPTIONS},
            },
        ],
    }
    response = await async_client.post(
        "/api/forms/builder", json=payload, headers=admin_headers, params={"directorate": "DTI"}
    )
    assert response.status_code == 201, response.text
    return response.json()


def answers(form: dict, name="Ana", prefs=("optA",)) -> list:
    name_field, prefs_field = form["fields"]
    return [
        {"fieldId": str(name_field["id"]), "value": name},
        {"fieldId": str(prefs_field["id"]), "value": list(prefs)},
    ]


async def submit(async_client, form, headers, status="SUBMITTED", **kwargs):
    body = {"status": status, "answers": answers(form, **kwargs)}
    return await async_client.post(f"/api/forms/{form['id']}/responses", json=body, headers=headers)


async def test_submit_and_conflict(async_client, form, viewer_headers, viewer_user):
    first = await submit(async_client, form, viewer_headers)
    second = await submit(async_client, form, viewer_headers)

    assert first.status_code == 201
    assert first.json()["status"] == "SUBMITTED"
    assert first.json()["userId"] == viewer_user["id"]
    assert first.json()["submittedAt"] is not None
    assert second.status_code == 409
    assert second.json() == {"detail": "Você já respondeu este formulário"}


async def test_submit_missing_required(async_client, form, viewer_headers):
    response = await submit(async_client, form, viewer_headers, name="")
    assert response.status_code == 422
    assert response.json()["detail"].endswith("Nome")


async def test_draft_allows_missing_required(async_client, form, viewer_headers):
    draft = await submit(async_client, form, viewer_headers, status="DRAFT", name="")
    again = await submit(async_client, form, viewer_headers, status="DRAFT", name="Ana")

    assert draft.status_code == 201
    assert again.json()["id"] == draft.json()["id"]


async def test_submit_to_unpublished_form(async_client, admin_headers, viewer_headers):
    created = await async_client.post("/api/forms", json={"title": "Rascunho"}, headers=admin_headers)
    form_id = created.json()["id"]

    response = await async_client.post(
        f"/api/forms/{form_id}/responses", json={"status": "DRAFT", "answers": []}, headers=viewer_headers
    )

    assert response.status_code == 409


async def test_submit_on_behalf_requires_admin(
    async_client, form, viewer_headers, admin_headers, manager_user
):
    body = {"userId": manager_user["id"], "status": "DRAFT", "answers": []}
    path = f"/api/forms/{form['id']}/responses"

    forbidden = await async_client.post(path, json=body, headers=viewer_headers)
    allowed = await async_client.post(path, json=body, headers=admin_headers)

    assert forbidden.status_code == 403
    assert allowed.status_code == 201
    assert allowed.json()["userName"] == manager_user["name"]


async def test_list_responses_for_reviewers(async_client, form, viewer_headers, manager_headers):
    await submit(async_client, form, viewer_headers)

    forbidden = await async_client.get(f"/api/forms/{form['id']}/responses", headers=viewer_headers)
    listed = await async_client.get(f"/api/forms/{form['id']}/responses", headers=manager_headers)

    assert forbidden.status_code == 403
    body = listed.json()
    assert len(body) == 1
    assert {a["value"] for a in body[0]["answers"] if isinstance(a["value"], str)} == {"Ana"}


async def test_my_response(async_client, form, viewer_headers):
    missing = await async_client.get(f"/api/forms/{form['id']}/responses/mine", headers=viewer_headers)
    await submit(async_client, form, viewer_headers, status="DRAFT")
    found = await async_client.get(f"/api/forms/{form['id']}/responses/mine", headers=viewer_headers)

    assert missing.status_code == 404
    assert found.json()["status"] == "DRAFT"
    assert len(found.json()["answers"]) == 2


async def test_view_response_renders_labels(async_client, form, viewer_headers):
    submitted = await submit(async_client, form, viewer_headers, prefs=("optB", "optA"))
    response_id = submitted.json()["id"]

    view = await async_client.get(
        f"/api/forms/{form['id']}/responses/{response_id}/view", headers=viewer_headers
    )

    assert view.status_code == 200
    assert [item["text"] for item in view.json()["items"]] == ["Ana", "Opção B, Opção A"]


async def test_view_response_of_someone_else(async_client, form, viewer_headers, make_user):
    submitted = await submit(async_client, form, viewer_headers)
    other = await make_user("Outra", "outra@example.net", "VIEWER")
    other_headers = {"Authorization": f"Bearer {create_access_token(other['email'])}"}

    response = await async_client.get(
        f"/api/forms/{form['id']}/responses/{submitted.json()['id']}/view", headers=other_headers
    )

    assert response.status_code == 403


async def test_view_response_from_other_form(async_client, form, viewer_headers):
    submitted = await submit(async_client, form, viewer_headers)

    response = await async_client.get(
        f"/api/forms/9999/responses/{submitted.json()['id']}/view", headers=viewer_headers
    )

    assert response.status_code == 404


async def test_export_csv(async_client, form, viewer_headers, manager_headers, admin_headers):
    await submit(async_client, form, viewer_headers)
    await submit(async_client, form, admin_headers, status="DRAFT", name="Rascunho")

    response = await async_client.get(
        f"/api/forms/{form['id']}/responses/export", headers=manager_headers
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/csv; charset=utf-8"
    assert "Pesquisa_de_Satisfa%C3%A7%C3%A3o_respostas.csv" in response.headers["content-disposition"]
    assert response.content.startswith(b"\xef\xbb\xbf")
    lines = response.content.decode("utf-8-sig").split("\n")
    assert lines[0] == '"Usuário","Data de Envio","Nome","Preferências"'
    assert len(lines) == 2
    assert lines[1].startswith('"Ana","')
    assert lines[1].endswith('","Ana","optA"')
