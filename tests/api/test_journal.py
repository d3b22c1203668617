"""
API tests for the training journal, including media uploads.
"""

import pytest


@pytest.fixture
def entry(client, athlete):
    response = client.post(
        "/api/v1/journal/entries",
        headers=athlete.headers,
        json={"title": "Day 1", "content": "Easy run", "mood": "good", "tags": ["run"]},
    )
    assert response.status_code == 200
    return response.json()["entry"]


# ---------------------------------------------------------------------------
# Entry Tests
# ---------------------------------------------------------------------------

class TestEntries:
    """Tests for creating, listing, updating and deleting entries."""

    def test_create_sanitizes_content(self, client, athlete):
        response = client.post(
            "/api/v1/journal/entries",
            headers=athlete.headers,
            json={"title": "<b>Legs</b>", "content": "Squats<script>alert(1)</script>"},
        )

        assert response.status_code == 200
        entry = response.json()["entry"]
        assert entry["title"] == "Legs"
        assert entry["content"] == "Squats"
        assert entry["userId"] == athlete.id
        assert entry["media"] == []

    def test_title_and_content_required(self, client, athlete):
        response = client.post(
            "/api/v1/journal/entries", headers=athlete.headers, json={"title": "Only title"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Title and content required"}

    def test_markup_only_content_is_empty(self, client, athlete):
        response = client.post(
            "/api/v1/journal/entries",
            headers=athlete.headers,
            json={"title": "T", "content": "<script>x()</script>"},
        )

        assert response.status_code == 400

    def test_list_is_private(self, client, athlete, entry, make_account):
        other = make_account(full_name="Other Athlete")

        mine = client.get("/api/v1/journal/entries", headers=athlete.headers).json()["entries"]
        theirs = client.get("/api/v1/journal/entries", headers=other.headers).json()["entries"]

        assert [e["id"] for e in mine] == [entry["id"]]
        assert theirs == []

    def test_partial_update(self, client, athlete, entry):
        response = client.put(
            f"/api/v1/journal/entries/{entry['id']}",
            headers=athlete.headers,
            json={"content": "Actually a tempo run"},
        )

        assert response.status_code == 200
        updated = response.json()["entry"]
        assert updated["title"] == "Day 1"
        assert updated["content"] == "Actually a tempo run"
        assert updated["mood"] == "good"

    def test_update_unknown_entry(self, client, athlete):
        response = client.put(
            "/api/v1/journal/entries/journal:nobody:1",
            headers=athlete.headers,
            json={"title": "x"},
        )

        assert response.status_code == 404
        assert response.json() == {"error": "Entry not found"}

    def test_cannot_edit_someone_elses_entry(self, client, entry, make_account):
        other = make_account(full_name="Other Athlete")

        response = client.put(
            f"/api/v1/journal/entries/{entry['id']}",
            headers=other.headers,
            json={"title": "Mine now"},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized to modify this entry"}

    def test_cannot_delete_someone_elses_entry(self, client, entry, make_account):
        other = make_account(full_name="Other Athlete")

        response = client.delete(f"/api/v1/journal/entries/{entry['id']}", headers=other.headers)

        assert response.status_code == 403
        assert response.json() == {"error": "Unauthorized to delete this entry"}

    def test_delete(self, client, athlete, entry):
        response = client.delete(f"/api/v1/journal/entries/{entry['id']}", headers=athlete.headers)

        assert response.json() == {"success": True}
        assert client.get("/api/v1/journal/entries", headers=athlete.headers).json() == {
            "entries": []
        }


# ---------------------------------------------------------------------------
# Media Tests
# ---------------------------------------------------------------------------

class TestEntryMedia:
    """Tests for POST /journal/entries/{id}/media."""

    def upload(
        self, client, account, entry_id,
        name="run.jpg", data=b"jpeg", content_type="image/jpeg",
    ):
        return client.post(
            f"/api/v1/journal/entries/{entry_id}/media",
            headers=account.headers,
            files={"file": (name, data, content_type)},
        )

    def test_upload_attaches_media(self, client, athlete, entry, settings, storage):
        response = self.upload(client, athlete, entry["id"])

        assert response.status_code == 200
        media = response.json()["media"]
        assert media["path"].startswith(f"{athlete.id}/")
        assert media["path"].endswith("-run.jpg")
        assert media["type"] == "image/jpeg"
        assert media["name"] == "run.jpg"
        assert storage.exists(settings.journal_media_bucket, media["path"])

        listed = client.get("/api/v1/journal/entries", headers=athlete.headers).json()["entries"]
        assert listed[0]["media"][0]["url"].startswith("mock://storage/")

    def test_rejects_unsupported_type(self, client, athlete, entry):
        response = self.upload(
            client, athlete, entry["id"], name="notes.exe", content_type="application/x-msdownload"
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Unsupported file type"}

    def test_rejects_oversized_file(self, client, athlete, entry):
        response = self.upload(client, athlete, entry["id"], data=b"x" * (1024 * 1024 + 1))

        assert response.status_code == 413

    def test_requires_file(self, client, athlete, entry):
        response = client.post(
            f"/api/v1/journal/entries/{entry['id']}/media", headers=athlete.headers
        )

        assert response.status_code == 400
        assert response.json() == {"error": "No file provided"}

    def test_delete_removes_media(self, client, athlete, entry, settings, storage):
        path = self.upload(client, athlete, entry["id"]).json()["media"]["path"]

        client.delete(f"/api/v1/journal/entries/{entry['id']}", headers=athlete.headers)

        assert storage.exists(settings.journal_media_bucket, path) is False
