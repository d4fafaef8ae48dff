"""End-to-end tests for the HTTP API."""

import asyncio
import uuid

import httpx
import pytest

from garden import repository
from garden.api import app, lifespan
from garden.config import settings
from garden.db import get_session
from garden.models import QuestionCategory


@pytest.fixture
async def client(session_factory, translator, monkeypatch):
    monkeypatch.setattr(settings.translation, "enabled", True)

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.state.session_factory = session_factory
    app.state.translator = translator
    app.dependency_overrides[get_session] = override_get_session
    try:
        async with lifespan(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                yield client
    finally:
        app.dependency_overrides.clear()
        del app.state.session_factory
        del app.state.translator


async def settle():
    await asyncio.wait_for(app.state.normalization_queue.join(), timeout=5)


def choice(question_id, value):
    return {"questionId": str(question_id), "type": 1, "selectedOption": value}


def address(question_id, state="SP", city="São Paulo"):
    return {"questionId": str(question_id), "type": 2, "selectedAddress": {"state": state, "city": city}}


@pytest.mark.integration
class TestSubmitAnswers:

    async def test_created(self, client, session):
        q1, q2 = uuid.uuid4(), uuid.uuid4()

        resp = await client.post("/answers", json={"answers": [choice(q1, "Indoor"), address(q2)]})

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "success"
        response_id = uuid.UUID(body["responseId"])

        await settle()
        stored = await repository.get_response_answers(session, response_id)
        assert [a.question_id for a in stored] == [q1, q2]

    async def test_validation_errors_are_400(self, client):
        resp = await client.post("/answers", json={"answers": [{"type": 1, "selectedOption": "Indoor"}]})

        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "validation_error"
        assert {"field": "answers.0.questionId", "message": "Field required"} in body["errors"]

    async def test_empty_submission_is_400(self, client):
        resp = await client.post("/answers", json={"answers": []})

        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "answers"

    async def test_answers_are_normalized_in_background(self, client, session, translator):
        translator.translations = {"Interno": "Indoor"}
        qid = uuid.uuid4()

        resp = await client.post("/answers", json={"answers": [choice(qid, "Interno")]})
        response_id = uuid.UUID(resp.json()["responseId"])

        await settle()
        stored = await repository.get_response_answers(session, response_id)
        assert stored[0].selected_option == "Indoor"
        assert translator.detect_calls == ["Interno"]

    async def test_translation_failure_does_not_affect_submission(self, client, session, translator):
        translator.fail_detection = True

        resp = await client.post("/answers", json={"answers": [choice(uuid.uuid4(), "Interno")]})

        assert resp.status_code == 201
        await settle()
        stored = await repository.get_response_answers(session, uuid.UUID(resp.json()["responseId"]))
        assert stored[0].selected_option == "Interno"


@pytest.mark.integration
class TestRecommendations:

    async def test_unknown_response_is_404(self, client):
        for kind in ("plants", "partners"):
            resp = await client.get(f"/answers/{uuid.uuid4()}/{kind}")
            assert resp.status_code == 404

    async def test_plants(self, client, add_question, add_plant, translator):
        translator.language = "en"
        q_space = await add_question(QuestionCategory.SPACE_TYPE)
        await add_plant("Fern", space_types=["Indoor"])
        await add_plant("Cactus", space_types=["Desert"])

        resp = await client.post("/answers", json={"answers": [choice(q_space, "Indoor")]})
        response_id = resp.json()["responseId"]
        await settle()

        resp = await client.get(f"/answers/{response_id}/plants")

        assert resp.status_code == 200
        body = resp.json()
        assert body["responseId"] == response_id
        assert [p["name"] for p in body["plantRecommendations"]] == ["Fern"]
        assert body["plantRecommendations"][0]["whyRecommended"] == [
            "Matches preference for space type (Indoor)"
        ]

    async def test_plants_follow_background_translation(self, client, add_question, add_plant, translator):
        translator.translations = {"Interno": "Indoor"}
        translator.release = asyncio.Event()
        q_space = await add_question(QuestionCategory.SPACE_TYPE)
        await add_plant("Fern", space_types=["Indoor"])

        resp = await client.post("/answers", json={"answers": [choice(q_space, "Interno")]})
        response_id = resp.json()["responseId"]

        # Worker has not rewritten the answer yet: matching sees the original text
        before = await client.get(f"/answers/{response_id}/plants")
        assert before.json()["plantRecommendations"] == []

        translator.release.set()
        await settle()

        after = await client.get(f"/answers/{response_id}/plants")
        assert [p["name"] for p in after.json()["plantRecommendations"]] == ["Fern"]

    async def test_partners_for_matching_rule(self, client, add_rule, add_partner, translator):
        translator.language = "en"
        q_space, q_challenge, q_address = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        await add_rule([(q_space, ["Outdoor"]), (q_challenge, ["Aesthetic"])])
        await add_partner(state="SP", city="São Paulo", rating=4.5, company_name="Verde Jardins")

        resp = await client.post(
            "/answers",
            json={
                "answers": [
                    choice(q_space, "Indoor"),
                    choice(q_challenge, "Aesthetic"),
                    address(q_address, state="SP", city="São Paulo"),
                ]
            },
        )
        response_id = resp.json()["responseId"]
        await settle()

        resp = await client.get(f"/answers/{response_id}/partners")

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Partner recommendations fetched successfully"
        [partner] = body["partnerRecommendations"]
        assert partner["companyName"] == "Verde Jardins"
        assert partner["address"]["city"] == "São Paulo"
        assert partner["rating"] == 4.5
        assert "Aesthetic" in partner["whyRecommended"]

    async def test_partners_without_address(self, client, add_rule, add_partner, translator):
        translator.language = "en"
        qid = uuid.uuid4()
        await add_rule([(qid, ["Indoor"])])
        await add_partner()

        resp = await client.post("/answers", json={"answers": [choice(qid, "Indoor")]})
        response_id = resp.json()["responseId"]
        await settle()

        resp = await client.get(f"/answers/{response_id}/partners")

        assert resp.status_code == 200
        body = resp.json()
        assert body["partnerRecommendations"] == []
        assert body["message"] == "No partner recommendations applicable for this response"


@pytest.mark.integration
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
