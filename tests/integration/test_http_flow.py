"""End-to-end HTTP tests through the FastAPI app."""

import time
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from resume_builder.core.redis_client import get_redis
from resume_builder.main import app
from resume_builder.services import generation


@pytest.fixture
def client(fake_redis):
    async def redis_override():
        return fake_redis

    app.dependency_overrides[get_redis] = redis_override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client, password="correct horse"):
    email = f"{uuid4().hex[:8]}@example.com"
    resp = client.post(
        "/register",
        data={"email": email, "password": password, "name": "Ada"},
        follow_redirects=False,
    )
    return email, resp


def open_editor(client, query=""):
    resp = client.get(f"/editor{query}", follow_redirects=False)
    assert resp.status_code == 303
    location = resp.headers["location"]
    session_id = parse_qs(urlparse(location).query)["session"][0]
    return session_id, location


def wait_for(client, session_id, predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        status = client.get(f"/editor/{session_id}/status").json()
        if predicate(status) or time.monotonic() > deadline:
            return status
        time.sleep(0.02)


@pytest.mark.integration
def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok", "redis": "ok"}


@pytest.mark.integration
def test_anonymous_editor_redirects_to_login(client):
    resp = client.get("/editor?step=skills", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login?next=%2Feditor%3Fstep%3Dskills"


@pytest.mark.integration
def test_anonymous_json_endpoints_answer_401(client):
    resp = client.get("/editor/whatever/status")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


@pytest.mark.integration
def test_register_rejects_short_password(client):
    _, resp = register(client, password="short")
    assert resp.status_code == 400
    assert "at least 8 characters" in resp.text


@pytest.mark.integration
def test_login_logout(client):
    email, _ = register(client)
    client.get("/logout")
    assert client.get("/resumes", follow_redirects=False).status_code == 302
    bad = client.post("/login", data={"email": email, "password": "wrong password"})
    assert bad.status_code == 400
    ok = client.post("/login", data={"email": email, "password": "correct horse"}, follow_redirects=False)
    assert ok.status_code == 302
    assert client.get("/resumes").status_code == 200


@pytest.mark.integration
def test_create_edit_list_and_delete_resume(client):
    _, resp = register(client)
    assert resp.status_code == 302

    session_id, location = open_editor(client)
    page = client.get(location)
    assert page.status_code == 200
    assert f'data-session="{session_id}"' in page.text

    patch = client.post(
        f"/editor/{session_id}/patch",
        json={"section": "general-info", "values": {"title": "Platform CV"}},
    )
    assert patch.status_code == 200
    assert patch.json()["applied"] is True

    patch = client.post(
        f"/editor/{session_id}/patch?width=397",
        json={"section": "skills", "values": {"skills": "Python, SQL"}},
    )
    body = patch.json()
    assert ">Python</span>" in body["preview"]
    assert "zoom: 0.5000" in body["preview"]

    status = wait_for(client, session_id, lambda s: s["resume_id"] and not s["has_unsaved_changes"])
    resume_id = status["resume_id"]
    assert resume_id
    assert f"resumeId={resume_id}" in status["location"]

    closed = client.post(f"/editor/{session_id}/close").json()
    assert closed["redirect"] == "/resumes"
    assert client.get(f"/editor/{session_id}/status").status_code == 404

    listing = client.get("/resumes")
    assert "Total: 1" in listing.text
    assert "Platform CV" in listing.text
    assert "Created on" in listing.text or "Updated on" in listing.text

    confirm = client.get(f"/resumes/{resume_id}/delete")
    assert "Delete resume?" in confirm.text
    unconfirmed = client.post(f"/resumes/{resume_id}/delete", data={"confirm": "no"}, follow_redirects=False)
    assert unconfirmed.status_code == 400

    deleted = client.post(f"/resumes/{resume_id}/delete", data={"confirm": "yes"}, follow_redirects=False)
    assert deleted.status_code == 303
    assert deleted.headers["location"] == "/resumes"
    assert "Total: 0" in client.get("/resumes").text


@pytest.mark.integration
def test_reopening_a_saved_resume(client):
    register(client)
    session_id, _ = open_editor(client)
    client.post(f"/editor/{session_id}/patch", json={"section": "summary", "values": {"summary": "Hello there"}})
    resume_id = client.post(f"/editor/{session_id}/close").json()["resume_id"]

    new_session, location = open_editor(client, f"?resumeId={resume_id}&step=summary")
    assert new_session != session_id
    page = client.get(location)
    assert "Hello there" in page.text
    assert client.get(f"/resumes/{resume_id}/print").status_code == 200


@pytest.mark.integration
def test_foreign_resume_is_not_found(client):
    register(client)
    session_id, _ = open_editor(client)
    client.post(f"/editor/{session_id}/patch", json={"section": "general-info", "values": {"title": "Private"}})
    resume_id = client.post(f"/editor/{session_id}/close").json()["resume_id"]

    client.get("/logout")
    register(client)
    resp = client.get(f"/editor?resumeId={resume_id}", follow_redirects=False)
    assert resp.status_code == 404
    assert "Resume not found!" in resp.text
    assert client.get(f"/editor/{session_id}/status").status_code == 404


@pytest.mark.integration
def test_invalid_patch_reports_errors(client):
    register(client)
    session_id, _ = open_editor(client)
    resp = client.post(
        f"/editor/{session_id}/patch",
        json={"section": "education", "values": {"educations": [{"start_date": "last year"}]}},
    )
    body = resp.json()
    assert body["applied"] is False
    assert body["errors"]
    assert body["status"]["has_unsaved_changes"] is False


@pytest.mark.integration
def test_patch_cannot_smuggle_a_photo(client):
    register(client)
    session_id, _ = open_editor(client)
    forged = {"name": "x.png", "size": 1, "content_type": "image/png", "data": "not an image" * 1000}
    for photo in (forged, "/media/someone-else.webp"):
        resp = client.post(
            f"/editor/{session_id}/patch",
            json={"section": "personal-info", "values": {"first_name": "Ada", "photo": photo}},
        )
        body = resp.json()
        assert body["applied"] is False
        assert body["errors"][0]["loc"] == ["photo"]
        assert "resume-photo" not in body["preview"]

    status = client.get(f"/editor/{session_id}/status").json()
    assert status["state"] == "idle"
    assert status["has_unsaved_changes"] is False
    client.post(f"/editor/{session_id}/close")


@pytest.mark.integration
def test_photo_upload_and_removal(client, png_bytes):
    register(client)
    session_id, _ = open_editor(client)

    rejected = client.post(
        f"/editor/{session_id}/photo",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert rejected.status_code == 422
    assert rejected.json()["errors"][0]["msg"].endswith("Must be an image file")

    uploaded = client.post(
        f"/editor/{session_id}/photo",
        files={"file": ("me.png", png_bytes, "image/png")},
        data={"last_modified": "1700000000000"},
    )
    assert uploaded.status_code == 200
    assert "data:image/png;base64," in uploaded.json()["preview"]

    status = wait_for(client, session_id, lambda s: s["resume_id"] and not s["has_unsaved_changes"])
    assert status["state"] == "idle"

    removed = client.delete(f"/editor/{session_id}/photo")
    assert "resume-photo" not in removed.json()["preview"]
    client.post(f"/editor/{session_id}/close")


@pytest.mark.integration
def test_ai_work_experience(client, monkeypatch, fake_openai):
    register(client)
    fake = fake_openai("Job title: Barista\nCompany: Blue Bottle\nDescription: Pulled shots")
    monkeypatch.setattr(generation, "_client", fake)

    short = client.post("/api/ai/work-experience", json={"description": "coffee"})
    assert short.status_code == 422

    resp = client.post(
        "/api/ai/work-experience",
        json={"description": "I worked as a barista at Blue Bottle for two years"},
    )
    assert resp.status_code == 200
    assert resp.json()["work_experience"]["company"] == "Blue Bottle"


@pytest.mark.integration
def test_ai_summary_is_rate_limited(client, monkeypatch, fake_openai):
    register(client)
    monkeypatch.setattr(generation, "_client", fake_openai("Seasoned barista."))
    monkeypatch.setattr(generation.settings, "AI_RATE_LIMIT", 1)

    first = client.post("/api/ai/summary", json={"job_title": "Barista"})
    assert first.json() == {"summary": "Seasoned barista."}
    second = client.post("/api/ai/summary", json={"job_title": "Barista"})
    assert second.status_code == 429
    assert second.headers["retry-after"] == "60"


@pytest.mark.integration
def test_ai_without_key_is_unavailable(client, monkeypatch):
    register(client)
    monkeypatch.setattr(generation, "_client", None)
    resp = client.post("/api/ai/summary", json={})
    assert resp.status_code == 503


@pytest.mark.integration
def test_landing_page_sends_signed_in_users_to_their_resumes(client):
    client.get("/logout")
    assert "perfect resume" in client.get("/").text
    register(client)
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/resumes"
