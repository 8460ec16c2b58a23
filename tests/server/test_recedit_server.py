import pytest
from fastapi.testclient import TestClient

from recedit import recedit_server
from recedit.edl import tools


@pytest.fixture
def client(tmp_path):
    tools.set_projects_dir(tmp_path)
    with TestClient(recedit_server.app) as c:
        yield c
    tools.set_projects_dir(None)


def _create(client, project_id="rec-1", duration=100.0):
    resp = client.post(
        "/projects",
        json={"id": project_id, "screen_video_path": "/tmp/screen.mp4", "duration": duration},
    )
    assert resp.status_code == 201
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_unknown_project_is_404(client):
    assert client.get("/projects/ghost").status_code == 404


def test_create_cut_and_metrics(client):
    project = _create(client)
    assert project["edits"]["segments"][0]["endTime"] == 100.0

    resp = client.post("/projects/rec-1/segments/cut", json={"time": 40})
    body = resp.json()
    assert body["applied"] is True
    assert body["canUndo"] is True
    right_id = body["createdId"]

    client.post(f"/projects/rec-1/segments/{right_id}/toggle")
    metrics = client.get("/projects/rec-1/metrics", params={"t": 20}).json()
    assert metrics["editedDuration"] == pytest.approx(40.0)
    assert metrics["editedTime"] == pytest.approx(20.0)


def test_rejected_edit_reports_reason(client):
    _create(client)
    client.post("/projects/rec-1/zoom", json={"start": 5, "end": 10})
    resp = client.post("/projects/rec-1/zoom", json={"start": 6, "end": 12})
    assert resp.status_code == 200
    assert resp.json()["applied"] is False
    assert resp.json()["reason"] == "start_inside_effect"


def test_bad_input_is_422(client):
    _create(client)
    resp = client.post("/projects/rec-1/annotations", json={"start": 5, "end": 5})
    assert resp.status_code == 422
    resp = client.post("/projects/rec-1/adjustments", json={"name": "gamma", "value": 1})
    assert resp.status_code == 422


def test_patch_with_explicit_mode_and_undo(client):
    _create(client)
    zoom_id = client.post("/projects/rec-1/zoom", json={"start": 5, "end": 10}).json()["createdId"]
    resp = client.patch(
        f"/projects/rec-1/zoom/{zoom_id}",
        json={"patch": {"start_time": 20}, "mode": "move"},
    )
    zoom = resp.json()["edits"]["zoom"][0]
    assert (zoom["startTime"], zoom["endTime"]) == (20, 25)

    undone = client.post("/projects/rec-1/undo").json()
    assert undone["undone"] is True
    assert undone["edits"]["zoom"][0]["startTime"] == 5


def test_save_and_export_request(client):
    _create(client)
    client.post("/projects/rec-1/speed", json={"start": 0, "end": 10, "speed": 2.0})
    assert client.post("/projects/rec-1/save").json() == {"saved": True}

    listed = client.get("/projects").json()["projects"]
    assert [p["project_id"] for p in listed] == ["rec-1"]

    export = client.post("/projects/rec-1/export-request", json={"format": "gif"}).json()
    assert export["editedDuration"] == pytest.approx(95.0)
    assert export["options"]["format"] == "gif"

    sample = client.get("/projects/rec-1/sample", params={"t": 5}).json()
    assert sample["speed"] == 2.0
    assert sample["cameraOverlay"] is None


def test_playback_toggle_and_seek(client):
    _create(client, duration=30.0)
    state = client.post("/projects/rec-1/playback/seek", json={"time": 50}).json()
    assert state["cursor"] == 30.0
    client.post("/projects/rec-1/playback/seek", json={"time": 12})
    playing = client.post("/projects/rec-1/playback/toggle").json()
    assert playing["isPlaying"] is True
    paused = client.post("/projects/rec-1/playback/toggle").json()
    assert paused["isPlaying"] is False
    assert client.get("/projects/rec-1/playback").json()["rate"] == 1.0


def test_playback_tick_advances_and_skips_cuts(client):
    _create(client, duration=30.0)
    client.post("/projects/rec-1/segments/cut", json={"time": 10})
    middle = client.post("/projects/rec-1/segments/cut", json={"time": 20}).json()["edits"]["segments"][1]
    client.post(f"/projects/rec-1/segments/{middle['id']}/toggle")

    client.post("/projects/rec-1/playback/seek", json={"time": 8})
    client.post("/projects/rec-1/playback/toggle")
    state = client.post("/projects/rec-1/playback/tick", json={"elapsed": 3}).json()
    assert state["cursor"] == 20.0
    assert state["isPlaying"] is True

    state = client.post("/projects/rec-1/playback/tick", json={"elapsed": 20}).json()
    assert state["cursor"] == 30.0
    assert state["isPlaying"] is False

    assert client.post("/projects/rec-1/playback/tick", json={"elapsed": -1}).status_code == 422


def test_server_and_tools_share_one_session(client):
    _create(client)
    session = tools.get_session("rec-1", must_exist=True)
    assert tools.get_session("rec-1") is session

    tools.timeline_cut("rec-1", 50.0)
    edits = client.get("/projects/rec-1").json()["edits"]
    assert len(edits["segments"]) == 2

    undone = client.post("/projects/rec-1/undo").json()
    assert undone["undone"] is True
    assert len(undone["edits"]["segments"]) == 1
    assert tools.edl_get("rec-1")["edits"]["segments"] == undone["edits"]["segments"]


def test_inverted_annotation_window_is_422(client):
    _create(client)
    annotation_id = client.post("/projects/rec-1/annotations", json={"start": 10, "end": 13}).json()["createdId"]
    resp = client.patch(
        f"/projects/rec-1/annotations/{annotation_id}",
        json={"patch": {"end_time": 2}},
    )
    assert resp.status_code == 422
