"""End-to-end API tests with yt-dlp replaced by canned snapshots."""

import pytest

from app.core.cache import cache
from app.core.ytdlp_client import YtDlpExecutionError

from conftest import PLAYLIST_ID, make_snapshot

PLAN = {"minutes_per_day": 30, "start_date": "2026-02-14", "playback_speed": 1}


@pytest.fixture
def imported(client, auth_headers, fake_extractor):
    fake_extractor.responses[PLAYLIST_ID] = make_snapshot()
    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": PLAYLIST_ID, "plan_config": PLAN},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/v1/playlists"),
        ("get", f"/api/v1/playlists/{PLAYLIST_ID}"),
        ("delete", f"/api/v1/playlists/{PLAYLIST_ID}"),
        ("get", f"/api/v1/youtube/playlist?playlist_id={PLAYLIST_ID}"),
        ("get", "/api/v1/user/me"),
    ],
)
def test_requires_authentication(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401


def test_invalid_token_is_rejected(client):
    response = client.get("/api/v1/playlists", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def test_signup_login_and_me(client):
    signup = client.post(
        "/api/v1/user/signup",
        json={"username": "bob", "email": "Bob@Example.com", "password": "hunter2hunter2"},
    )
    assert signup.status_code == 201
    assert signup.json()["email"] == "bob@example.com"

    login = client.post("/api/v1/user/login", data={"username": "bob@example.com", "password": "hunter2hunter2"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = client.get("/api/v1/user/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "bob"


def test_signup_rejects_duplicates(client, user):
    response = client.post(
        "/api/v1/user/signup",
        json={"username": "alice", "email": "other@example.com", "password": "correct-horse"},
    )
    assert response.status_code == 400


def test_login_with_wrong_password(client, user):
    response = client.post("/api/v1/user/login", data={"username": "alice", "password": "wrong-password"})
    assert response.status_code == 401


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

def test_import_returns_playlist_schedule_and_metadata(imported):
    assert imported["playlist"]["snapshot"]["playlist_id"] == PLAYLIST_ID
    assert imported["extraction_metadata"]["mode"] == "flat"
    assert imported["schedule"]["total_videos"] == 3
    assert [day["video_ids"] for day in imported["schedule"]["days"]] == [["v0", "v1"], ["v2"]]


def test_import_accepts_playlist_url(client, auth_headers, fake_extractor):
    fake_extractor.responses[PLAYLIST_ID] = make_snapshot()

    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": f"https://www.youtube.com/playlist?list={PLAYLIST_ID}", "plan_config": PLAN},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert fake_extractor.calls == [PLAYLIST_ID]


def test_import_twice_conflicts(client, auth_headers, fake_extractor, imported):
    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": PLAYLIST_ID, "plan_config": PLAN},
        headers=auth_headers,
    )
    assert response.status_code == 409


def test_import_unavailable_playlist(client, auth_headers, fake_extractor):
    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": PLAYLIST_ID, "plan_config": PLAN},
        headers=auth_headers,
    )
    assert response.status_code == 404


def test_import_extraction_failure(client, auth_headers, fake_extractor):
    fake_extractor.responses[PLAYLIST_ID] = YtDlpExecutionError("yt-dlp timed out after 30s.")

    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": PLAYLIST_ID, "plan_config": PLAN},
        headers=auth_headers,
    )

    assert response.status_code == 500
    assert "timed out" in response.json()["detail"]


def test_import_validates_plan(client, auth_headers, fake_extractor):
    response = client.post(
        "/api/v1/playlists/import",
        json={"playlist_id": PLAYLIST_ID, "plan_config": {**PLAN, "playback_speed": 3}},
        headers=auth_headers,
    )
    assert response.status_code == 422
    assert fake_extractor.calls == []


def test_list_and_get(client, auth_headers, imported):
    listed = client.get("/api/v1/playlists", headers=auth_headers).json()
    assert len(listed["playlists"]) == 1

    single = client.get(f"/api/v1/playlists/{PLAYLIST_ID}", headers=auth_headers).json()
    assert single["playlist"]["plan_config"]["minutes_per_day"] == 30
    assert single["extraction_metadata"] is None

    schedule = client.get(f"/api/v1/playlists/{PLAYLIST_ID}/schedule", headers=auth_headers).json()
    assert schedule["remaining_videos"] == 3


def test_unknown_playlist_is_404(client, auth_headers):
    assert client.get("/api/v1/playlists/PLdoesnotexist00", headers=auth_headers).status_code == 404


def test_config_patch_reschedules(client, auth_headers, imported):
    response = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/config",
        json={"playback_speed": 2},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["playlist"]["plan_config"]["playback_speed"] == 2
    assert [day["video_ids"] for day in body["schedule"]["days"]] == [["v0", "v1", "v2"]]


def test_far_future_start_date_keeps_listing_working(client, auth_headers, imported):
    response = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/config",
        json={"start_date": "9999-12-31"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["schedule"]["end_date"] == "9999-12-31"

    listed = client.get("/api/v1/playlists", headers=auth_headers)
    assert listed.status_code == 200
    days = listed.json()["playlists"][0]["schedule"]["days"]
    assert [day["date"] for day in days] == ["9999-12-30", "9999-12-31"]


def test_impossible_start_date_is_rejected(client, auth_headers, imported):
    response = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/config",
        json={"start_date": "2026-02-30"},
        headers=auth_headers,
    )
    assert response.status_code == 422

    stored = client.get(f"/api/v1/playlists/{PLAYLIST_ID}", headers=auth_headers).json()
    assert stored["playlist"]["plan_config"]["start_date"] == "2026-02-14"


def test_empty_config_patch_is_rejected(client, auth_headers, imported):
    response = client.patch(f"/api/v1/playlists/{PLAYLIST_ID}/config", json={}, headers=auth_headers)
    assert response.status_code == 422


def test_progress_toggle(client, auth_headers, imported):
    done = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/progress",
        json={"video_id": "v0", "completed": True},
        headers=auth_headers,
    ).json()
    assert done["schedule"]["completed_videos"] == 1
    assert done["playlist"]["progress_map"]["v0"]["completed"] is True

    undone = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/progress",
        json={"video_id": "v0", "completed": False},
        headers=auth_headers,
    ).json()
    assert undone["schedule"]["completed_videos"] == 0
    assert undone["playlist"]["progress_map"] == {}


def test_progress_for_unknown_video(client, auth_headers, imported):
    response = client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/progress",
        json={"video_id": "missing", "completed": True},
        headers=auth_headers,
    )
    assert response.status_code == 404


def test_refresh_keeps_plan_and_prunes_progress(client, auth_headers, fake_extractor, imported):
    client.patch(f"/api/v1/playlists/{PLAYLIST_ID}/config", json={"minutes_per_day": 45}, headers=auth_headers)
    client.patch(
        f"/api/v1/playlists/{PLAYLIST_ID}/progress",
        json={"video_id": "v0", "completed": True},
        headers=auth_headers,
    )
    fake_extractor.responses[PLAYLIST_ID] = make_snapshot(durations=(300, 300), ids=["v1", "v5"])

    response = client.post(f"/api/v1/playlists/{PLAYLIST_ID}/refresh", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["playlist"]["plan_config"]["minutes_per_day"] == 45
    assert body["playlist"]["progress_map"] == {}
    assert body["extraction_metadata"]["video_count"] == 2


def test_refresh_invalidates_cached_preview(client, auth_headers, fake_extractor, imported, monkeypatch):
    deleted = []
    monkeypatch.setattr(cache, "delete_cache", lambda key: deleted.append(key) or True)

    response = client.post(f"/api/v1/playlists/{PLAYLIST_ID}/refresh", headers=auth_headers)

    assert response.status_code == 200
    assert deleted == [f"ytdlp:playlist:{PLAYLIST_ID}"]


def test_refresh_of_unknown_playlist(client, auth_headers, fake_extractor):
    response = client.post(f"/api/v1/playlists/{PLAYLIST_ID}/refresh", headers=auth_headers)
    assert response.status_code == 404
    assert fake_extractor.calls == []


def test_delete(client, auth_headers, imported):
    assert client.delete(f"/api/v1/playlists/{PLAYLIST_ID}", headers=auth_headers).status_code == 204
    assert client.get(f"/api/v1/playlists/{PLAYLIST_ID}", headers=auth_headers).status_code == 404


# ---------------------------------------------------------------------------
# YouTube preview and local-state migration
# ---------------------------------------------------------------------------

def test_preview(client, auth_headers, fake_extractor):
    fake_extractor.responses[PLAYLIST_ID] = make_snapshot()

    response = client.get(
        "/api/v1/youtube/playlist",
        params={"playlist_id": f"https://www.youtube.com/playlist?list={PLAYLIST_ID}"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["snapshot"]["video_count"] == 3


def test_preview_rejects_invalid_id(client, auth_headers, fake_extractor):
    response = client.get(
        "/api/v1/youtube/playlist", params={"playlist_id": "https://example.com/x"}, headers=auth_headers
    )
    assert response.status_code == 400


def test_preview_unavailable(client, auth_headers, fake_extractor):
    response = client.get("/api/v1/youtube/playlist", params={"playlist_id": PLAYLIST_ID}, headers=auth_headers)
    assert response.status_code == 404


def test_local_state_migration(client, auth_headers):
    state = {
        "snapshot": make_snapshot().model_dump(mode="json"),
        "plan_config": PLAN,
        "progress_map": {"v2": {"completed": True}},
        "updated_at": "2026-02-15T09:00:00Z",
    }
    payload = {"client_migration_key": "ps-v1-0123456789abcdef", "playlists": [state]}

    first = client.post("/api/v1/migration/local-state", json=payload, headers=auth_headers)
    assert first.status_code == 200
    assert first.json() == {
        "imported_playlists": 1,
        "skipped_playlists": 0,
        "imported_progress_entries": 1,
        "already_migrated": False,
    }

    second = client.post("/api/v1/migration/local-state", json=payload, headers=auth_headers)
    assert second.json()["already_migrated"] is True

    listed = client.get("/api/v1/playlists", headers=auth_headers).json()
    assert listed["playlists"][0]["schedule"]["completed_videos"] == 1


def test_local_state_migration_derives_missing_key(client, auth_headers):
    state = {
        "snapshot": make_snapshot().model_dump(mode="json"),
        "plan_config": PLAN,
        "progress_map": {},
        "updated_at": "2026-02-15T09:00:00Z",
    }
    payload = {"playlists": [state]}

    first = client.post("/api/v1/migration/local-state", json=payload, headers=auth_headers)
    assert first.status_code == 200
    assert first.json()["imported_playlists"] == 1
    assert first.json()["already_migrated"] is False

    second = client.post("/api/v1/migration/local-state", json=payload, headers=auth_headers)
    assert second.status_code == 200
    assert second.json()["already_migrated"] is True


# ---------------------------------------------------------------------------
# Batch import
# ---------------------------------------------------------------------------

OTHER_ID = "PLotherplaylist0001"
MISSING_ID = "PLmissingplaylist01"


def test_batch_import_reports_each_line(client, auth_headers, fake_extractor, imported):
    fake_extractor.responses[OTHER_ID] = make_snapshot(playlist_id=OTHER_ID, durations=(120, 240))
    text = "\n".join([
        f"https://www.youtube.com/playlist?list={OTHER_ID}",
        PLAYLIST_ID,
        "not a playlist",
        "",
        MISSING_ID,
        OTHER_ID,
    ])

    response = client.post(
        "/api/v1/playlists/import/batch",
        json={"playlist_inputs": text, "plan_config": PLAN},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["playlist"]["snapshot"]["playlist_id"] for item in body["imported"]] == [OTHER_ID]
    assert body["imported"][0]["schedule"]["days"][0]["date_label"]
    assert body["skipped_existing"] == [PLAYLIST_ID]
    assert [failure["playlist_id"] for failure in body["failures"]] == [MISSING_ID]
    assert body["invalid_lines"] == 1
    assert fake_extractor.calls.count(OTHER_ID) == 1

    listed = client.get("/api/v1/playlists", headers=auth_headers).json()
    assert len(listed["playlists"]) == 2


def test_batch_import_extraction_error_is_per_playlist(client, auth_headers, fake_extractor):
    fake_extractor.responses[PLAYLIST_ID] = YtDlpExecutionError("yt-dlp crashed")
    fake_extractor.responses[OTHER_ID] = make_snapshot(playlist_id=OTHER_ID)

    body = client.post(
        "/api/v1/playlists/import/batch",
        json={"playlist_inputs": f"{PLAYLIST_ID}\n{OTHER_ID}", "plan_config": PLAN},
        headers=auth_headers,
    ).json()

    assert body["failures"] == [{"playlist_id": PLAYLIST_ID, "message": "yt-dlp crashed"}]
    assert len(body["imported"]) == 1


def test_batch_import_without_valid_lines(client, auth_headers, fake_extractor):
    response = client.post(
        "/api/v1/playlists/import/batch",
        json={"playlist_inputs": "hello\nhttps://example.com/x", "plan_config": PLAN},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert fake_extractor.calls == []
