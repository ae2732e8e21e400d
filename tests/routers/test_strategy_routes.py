import datetime

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio

DTI = {"directorate": "DTI"}


async def post(async_client: AsyncClient, path: str, body: dict, headers: dict) -> dict:
    response = await async_client.post(f"/api/strategy{path}", json=body, params=DTI, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_okr_flow(async_client: AsyncClient, manager_headers, viewer_headers):
    objective = await post(
        async_client, "/objectives", {"code": "OE1", "title": "Eficiência"}, manager_headers
    )
    late = (datetime.date.today() - datetime.timedelta(days=10)).isoformat()
    await post(
        async_client,
        "/key-results",
        {"objectiveId": objective["id"], "code": "KR1", "status": "CONCLUIDO", "deadline": late},
        manager_headers,
    )
    kr = await post(
        async_client,
        "/key-results",
        {"objectiveId": objective["id"], "code": "KR2", "status": "EM_ANDAMENTO", "deadline": late},
        manager_headers,
    )
    await post(
        async_client,
        "/key-results",
        {"objectiveId": objective["id"], "code": "KR3"},
        manager_headers,
    )

    listed = await async_client.get("/api/strategy/key-results", params=DTI, headers=viewer_headers)
    okr = await async_client.get("/api/strategy/stats/okr", params=DTI, headers=viewer_headers)
    breakdown = await async_client.get("/api/strategy/stats/objectives", params=DTI, headers=viewer_headers)
    situation = await async_client.get("/api/strategy/stats/situation", params=DTI, headers=viewer_headers)
    elsewhere = await async_client.get(
        "/api/strategy/stats/okr", params={"directorate": "DPE"}, headers=viewer_headers
    )

    assert [k["situation"] for k in listed.json()] == ["FINALIZADO", "EM_ATRASO", "NO_PRAZO"]
    assert kr["situation"] == "EM_ATRASO"
    assert okr.json() == {"total": 3, "concluido": 1, "emAndamento": 1, "aIniciar": 1, "progresso": 33}
    assert breakdown.json() == [{"name": "OE1", "concluido": 1, "emAndamento": 1, "naoIniciado": 1}]
    assert situation.json() == {"noPrazo": 1, "finalizado": 1, "emAtraso": 1}
    assert elsewhere.json()["total"] == 0


async def test_key_result_needs_existing_objective(async_client: AsyncClient, manager_headers):
    response = await async_client.post(
        "/api/strategy/key-results", json={"objectiveId": 999, "code": "KR"}, headers=manager_headers
    )
    assert response.status_code == 404


async def test_viewer_cannot_write(async_client: AsyncClient, viewer_headers):
    response = await async_client.post(
        "/api/strategy/objectives", json={"code": "OE1", "title": "X"}, headers=viewer_headers
    )
    assert response.status_code == 403


async def test_delete_objective_cascades(async_client: AsyncClient, manager_headers):
    objective = await post(async_client, "/objectives", {"code": "OE1", "title": "X"}, manager_headers)
    kr = await post(async_client, "/key-results", {"objectiveId": objective["id"], "code": "KR1"}, manager_headers)
    await post(async_client, "/initiatives", {"keyResultId": kr["id"], "title": "Iniciativa"}, manager_headers)

    deleted = await async_client.delete(f"/api/strategy/objectives/{objective['id']}", headers=manager_headers)
    key_results = await async_client.get("/api/strategy/key-results", params=DTI, headers=manager_headers)
    initiatives = await async_client.get("/api/strategy/initiatives", params=DTI, headers=manager_headers)

    assert deleted.status_code == 204
    assert key_results.json() == []
    assert initiatives.json() == []


async def test_update_initiative(async_client: AsyncClient, manager_headers):
    objective = await post(async_client, "/objectives", {"code": "OE1", "title": "X"}, manager_headers)
    kr = await post(async_client, "/key-results", {"objectiveId": objective["id"], "code": "KR1"}, manager_headers)
    initiative = await post(
        async_client, "/initiatives", {"keyResultId": kr["id"], "title": "Iniciativa"}, manager_headers
    )

    response = await async_client.put(
        f"/api/strategy/initiatives/{initiative['id']}",
        json={"keyResultId": kr["id"], "title": "Iniciativa", "boardStatus": "FEITO", "location": "CONCLUIDA"},
        params=DTI,
        headers=manager_headers,
    )

    assert response.json()["boardStatus"] == "FEITO"
    assert response.json()["location"] == "CONCLUIDA"


async def test_sprint_stats(async_client: AsyncClient, manager_headers):
    rows = [
        {"backlogTasks": "Mapear", "sprintStatus": "SPRINT_ATUAL", "progress": "FEITO"},
        {"backlogTasks": "Testar", "sprintStatus": "FORA_SPRINT", "progress": "A_FAZER"},
        {"backlogTasks": "", "sprintStatus": "BACKLOG", "progress": "A_FAZER"},
    ]
    for row in rows:
        await post(async_client, "/execution-controls", {"planProgram": "PE1", **row}, manager_headers)

    response = await async_client.get("/api/strategy/stats/sprint", params=DTI, headers=manager_headers)

    assert response.json() == {
        "backlog": 2,
        "emFila": 1,
        "concluido": 1,
        "sprintAtual": 1,
        "progresso": 50,
    }
