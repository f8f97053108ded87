"""
Tests for the HTTP API.

Generation runs go to the in-process thread pool, so each test waits on
the returned job before reading the finished story.
"""

import base64
import os

import pytest
from unittest.mock import patch

from pictotale.utils.errors import ServiceUnavailableError


def _job_service(app):
    return app.extensions["pictotale"]["job_service"]


def _create(client, **overrides):
    body = {
        "story_type_id": "adventure",
        "user_prompt": "A brave mouse looks for magic cheese",
        "character_names": ["Squeaky"],
        "length": "short",
    }
    body.update(overrides)
    return client.post("/api/stories", json=body)


@pytest.fixture
def finished_story_id(app, client):
    response = _create(client)
    assert response.status_code == 202
    _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)
    return response.get_json()["story_id"]


class TestHealthAndCatalog:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert set(data["providers"]) == {"text", "vision", "transcription", "speech", "image"}
        assert data["background_jobs"] is False

    def test_story_types(self, client):
        response = client.get("/api/story-types")
        assert response.status_code == 200
        types = response.get_json()["story_types"]
        assert len(types) == 8
        assert "adventure" in {item["id"] for item in types}

    def test_unknown_route_is_json_404(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json()["error_code"] == "NOT_FOUND"


class TestCreateStory:

    def test_accepted_then_completed(self, app, client):
        response = _create(client)

        assert response.status_code == 202
        data = response.get_json()
        assert data["status"] == "generating"
        assert data["story_type"] == {"id": "adventure", "name": "Adventure"}
        assert data["estimated_time"]

        _job_service(app).wait_for(data["job_id"], timeout=10)
        status = client.get(f"/api/stories/{data['story_id']}/status").get_json()
        assert status["status"] == "completed"
        assert status["progress_percent"] == 100
        assert status["estimated_time_remaining"] == "Complete"
        assert status["title"]
        assert status["completed_at"]

    def test_full_record(self, client, finished_story_id):
        response = client.get(f"/api/stories/{finished_story_id}")
        assert response.status_code == 200
        story = response.get_json()
        assert story["id"] == finished_story_id
        assert story["content"]
        assert story["character_names"] == ["Squeaky"]
        assert story["media"]["background_music_url"] == "http://test/music/adventure_theme.mp3"
        assert story["metadata"]["word_count"] > 0

    def test_drawing_input(self, app, client):
        drawing = "data:image/png;base64," + base64.b64encode(b"not really a png").decode()
        response = _create(client, user_prompt="", drawing_base64=drawing)
        assert response.status_code == 202

        _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)
        story = client.get(f"/api/stories/{response.get_json()['story_id']}").get_json()
        assert story["status"] == "completed"
        assert story["user_input"]["drawing_provided"] is True
        assert story["drawing_image_url"]

    def test_illustrations_on_by_default(self, client, finished_story_id):
        story = client.get(f"/api/stories/{finished_story_id}").get_json()
        assert story["user_input"]["preferences"]["generate_illustrations"] is True
        assert len(story["media"]["illustrations"]) == 2

    def test_voice_preference_recorded(self, app, client):
        response = _create(client, preferences={"voice_id": "grandma-voice"})
        _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)
        story = client.get(f"/api/stories/{response.get_json()['story_id']}").get_json()
        assert story["media"]["narration_voice_id"] == "grandma-voice"

    def test_unknown_story_type(self, client):
        response = _create(client, story_type_id="horror")
        assert response.status_code == 400
        data = response.get_json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["details"]["field"] == "story_type_id"

    def test_no_inputs(self, client):
        response = _create(client, user_prompt="")
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "VALIDATION_ERROR"

    def test_bad_base64(self, client):
        response = _create(client, voice_base64="!!not base64!!")
        assert response.status_code == 400

    def test_non_json_body(self, client):
        response = client.post("/api/stories", data="story please", content_type="text/plain")
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "VALIDATION_ERROR"

    def test_dispatch_failure_marks_story_failed(self, app, client, repository):
        with patch.object(
            _job_service(app), "submit_generation",
            side_effect=ServiceUnavailableError("background_jobs", "Redis is down"),
        ):
            response = _create(client)

        assert response.status_code == 503
        assert response.get_json()["error_code"] == "SERVICE_UNAVAILABLE"
        assert repository.count("failed") == 1


class TestReadStory:

    def test_unknown_story(self, client):
        for path in ("/api/stories/story_000000000000", "/api/stories/story_000000000000/status"):
            response = client.get(path)
            assert response.status_code == 404
            assert response.get_json()["error_code"] == "NOT_FOUND"

    def test_job_status(self, app, client):
        data = _create(client).get_json()
        _job_service(app).wait_for(data["job_id"], timeout=10)

        response = client.get(f"/api/jobs/{data['job_id']}")
        assert response.status_code == 200
        job = response.get_json()
        assert job["status"] == "finished"
        assert job["story_id"] == data["story_id"]
        assert job["result"]["status"] == "completed"

    def test_unknown_job(self, client):
        assert client.get("/api/jobs/job_missing").status_code == 404


class TestContinueStory:

    def test_continue_extends_content(self, app, client, finished_story_id):
        before = client.get(f"/api/stories/{finished_story_id}").get_json()

        response = client.post(
            f"/api/stories/{finished_story_id}/continue",
            json={"additional_prompt": "They find a hidden door", "new_characters": ["Bubbles"]},
        )
        assert response.status_code == 202
        assert response.get_json()["status"] == "generating"

        _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)
        after = client.get(f"/api/stories/{finished_story_id}").get_json()
        assert after["status"] == "completed"
        assert after["content"].startswith(before["content"])
        assert len(after["content"]) > len(before["content"])
        assert after["character_names"] == ["Squeaky", "Bubbles"]
        assert after["metadata"]["continuation_count"] == 1

    def test_requires_prompt(self, client, finished_story_id):
        response = client.post(f"/api/stories/{finished_story_id}/continue", json={"additional_prompt": "  "})
        assert response.status_code == 400

    def test_only_completed_stories(self, client, make_draft):
        draft = make_draft()
        response = client.post(f"/api/stories/{draft.id}/continue", json={"additional_prompt": "more"})
        assert response.status_code == 409
        assert response.get_json()["error_code"] == "INVALID_STATE"

    def test_dispatch_failure_reverts(self, app, client, finished_story_id):
        with patch.object(
            _job_service(app), "submit_continuation",
            side_effect=ServiceUnavailableError("background_jobs", "Redis is down"),
        ):
            response = client.post(f"/api/stories/{finished_story_id}/continue", json={"additional_prompt": "more"})

        assert response.status_code == 503
        status = client.get(f"/api/stories/{finished_story_id}/status").get_json()
        assert status["status"] == "completed"
        assert "Redis is down" in status["last_continuation_error"]


class TestArchiveStory:

    def test_archive_once(self, client, finished_story_id):
        response = client.post(f"/api/stories/{finished_story_id}/archive")
        assert response.status_code == 200
        assert response.get_json() == {"story_id": finished_story_id, "status": "archived"}

        again = client.post(f"/api/stories/{finished_story_id}/archive")
        assert again.status_code == 409

    def test_archived_story_cannot_continue(self, client, finished_story_id):
        client.post(f"/api/stories/{finished_story_id}/archive")
        response = client.post(f"/api/stories/{finished_story_id}/continue", json={"additional_prompt": "more"})
        assert response.status_code == 409


class TestShareStory:

    def test_share_and_unshare(self, client, finished_story_id):
        response = client.put(f"/api/stories/{finished_story_id}/share", json={"is_shared": True})
        assert response.status_code == 200
        assert response.get_json()["is_shared"] is True
        assert client.get(f"/api/stories/{finished_story_id}").get_json()["is_shared"] is True

        client.put(f"/api/stories/{finished_story_id}/share", json={"is_shared": False})
        assert client.get(f"/api/stories/{finished_story_id}").get_json()["is_shared"] is False

    def test_requires_boolean(self, client, finished_story_id):
        response = client.put(f"/api/stories/{finished_story_id}/share", json={"is_shared": "yes"})
        assert response.status_code == 400
        assert response.get_json()["details"]["field"] == "is_shared"

    def test_unknown_story(self, client):
        response = client.put("/api/stories/story_000000000000/share", json={"is_shared": True})
        assert response.status_code == 404


class TestDeleteStory:

    def test_delete(self, client, finished_story_id):
        response = client.delete(f"/api/stories/{finished_story_id}")
        assert response.status_code == 200
        assert response.get_json()["story_id"] == finished_story_id
        assert client.get(f"/api/stories/{finished_story_id}").status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete("/api/stories/story_000000000000").status_code == 404

    def test_running_story_cannot_be_deleted(self, client, make_draft, repository):
        draft = make_draft(user_prompt="x")
        repository.update(draft.id, {"status": "generating"})

        response = client.delete(f"/api/stories/{draft.id}")
        assert response.status_code == 409
        assert repository.get_by_id(draft.id) is not None


class TestUserStories:

    def test_lists_only_that_users_stories(self, app, client):
        for user_id in ("user-1", "user-1", "user-2"):
            response = _create(client, user_id=user_id)
            _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)

        response = client.get("/api/users/user-1/stories")
        assert response.status_code == 200
        data = response.get_json()
        assert len(data["stories"]) == 2
        assert {story["user_id"] for story in data["stories"]} == {"user-1"}
        assert data["pagination"] == {"page": 1, "limit": 10, "count": 2}

    def test_paging(self, app, client):
        for _ in range(3):
            response = _create(client, user_id="user-1")
            _job_service(app).wait_for(response.get_json()["job_id"], timeout=10)

        second_page = client.get("/api/users/user-1/stories?page=2&limit=2").get_json()
        assert len(second_page["stories"]) == 1

    def test_status_filter(self, app, client, make_draft, repository):
        draft = make_draft(user_prompt="x")
        repository.update(draft.id, {"user_id": "user-1", "status": "failed"})

        data = client.get("/api/users/user-1/stories?status=failed").get_json()
        assert [story["id"] for story in data["stories"]] == [draft.id]

    @pytest.mark.parametrize("query", ["page=0", "limit=abc", "limit=500", "status=lost"])
    def test_invalid_query(self, client, query):
        response = client.get(f"/api/users/user-1/stories?{query}")
        assert response.status_code == 400
        assert response.get_json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_user_is_empty(self, client):
        assert client.get("/api/users/nobody/stories").get_json()["stories"] == []


class TestMedia:

    def test_serves_stored_file(self, client, settings):
        folder = os.path.join(settings.storage_dir, "narration", "story_abc")
        os.makedirs(folder, exist_ok=True)
        with open(os.path.join(folder, "clip.mp3"), "wb") as f:
            f.write(b"ID3audio")

        response = client.get("/media/narration/story_abc/clip.mp3")
        assert response.status_code == 200
        assert response.data == b"ID3audio"

    def test_missing_file(self, client):
        assert client.get("/media/narration/nope.mp3").status_code == 404

    def test_json_records_not_served(self, client, settings):
        os.makedirs(settings.storage_dir, exist_ok=True)
        with open(os.path.join(settings.storage_dir, "story_abc.json"), "w") as f:
            f.write("{}")
        assert client.get("/media/story_abc.json").status_code == 404
