"""Tests for submitting and listing form responses."""

import pytest


@pytest.fixture
def published(client, register_user, two_step_form):
    """A two-step form owned by a signed-in user."""
    register_user(email="owner@example.com")
    created = client.post(
        "/api/form/create",
        json={"title": two_step_form.title, "steps": two_step_form.steps_payload()},
    ).json()
    return created, two_step_form


def answers(form, name="Ada", email="ada@example.com"):
    return {form.steps[0][0].id: name, form.steps[1][0].id: email}


class TestAddResponse:
    def test_valid_submission_stored(self, client, published, outbox):
        created, form = published
        response = client.post(
            "/api/formres/add",
            json={"shareId": created["shareId"], "steps": {"step2": answers(form)}},
        )

        assert response.status_code == 201
        assert response.json()["success"] is True
        assert response.json()["id"]
        assert [m["to"] for m in outbox if m["subject"] == "Response Received"] == ["owner@example.com"]
        mail = next(m for m in outbox if m["subject"] == "Response Received")
        assert "<strong>Name:</strong> Ada" in mail["html"]

    def test_missing_required_value_rejected(self, client, published):
        created, form = published
        response = client.post(
            "/api/formres/add",
            json={"shareId": created["shareId"], "steps": {"step2": answers(form, email="")}},
        )

        assert response.status_code == 422
        assert response.json()["errors"] == {form.steps[1][0].id: "This field is required"}

    def test_markup_only_value_counts_as_blank(self, client, published):
        created, form = published
        response = client.post(
            "/api/formres/add",
            json={"shareId": created["shareId"], "steps": {"step1": answers(form, name="<b></b>")}},
        )

        assert response.status_code == 422
        assert response.json()["errors"] == {form.steps[0][0].id: "This field is required"}
        listed = client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).json()
        assert listed["data"] == []

    def test_values_stored_as_cleaned(self, client, published):
        created, form = published
        client.post(
            "/api/formres/add",
            json={"shareId": created["shareId"], "steps": {"step1": answers(form, name="  <i>Ada</i> ")}},
        )

        entry = client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).json()["data"][0]
        assert entry["steps"]["step1"][form.steps[0][0].id] == "Ada"

    def test_unknown_share_id(self, client):
        response = client.post("/api/formres/add", json={"shareId": "nope", "steps": {}})
        assert response.status_code == 404

    def test_mail_failure_does_not_lose_response(self, client, published, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("smtp down")

        monkeypatch.setattr("services.responses_service.send_email_html", broken)
        created, form = published
        response = client.post(
            "/api/formres/add",
            json={"shareId": created["shareId"], "steps": {"step2": answers(form)}},
        )

        assert response.status_code == 201
        listed = client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).json()
        assert len(listed["data"]) == 1


class TestFetchResponses:
    def test_owner_sees_responses(self, client, published):
        created, form = published
        client.post("/api/formres/add", json={"shareId": created["shareId"], "steps": {"step2": answers(form)}})

        body = client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).json()

        assert body["success"] is True
        entry = body["data"][0]
        assert entry["shareId"] == created["shareId"]
        assert entry["formId"] == created["id"]
        assert entry["steps"] == {"step2": answers(form)}

    def test_requires_login(self, client, published):
        created, _ = published
        client.cookies.clear()
        assert client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).status_code == 401

    def test_other_users_forbidden(self, client, published, register_user):
        created, _ = published
        client.cookies.clear()
        register_user(email="someone@example.com")

        assert client.get("/api/formres/fetch", params={"shareId": created["shareId"]}).status_code == 403
