"""HTTP endpoint tests."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from taskengine.app.main import app

NOW = datetime.now(timezone.utc)


def task_payload(task_id: str, **overrides) -> dict:
    payload = {
        "id": task_id,
        "teamId": "team-1",
        "title": f"Task {task_id}",
        "assignedToId": "user-1",
    }
    payload.update(overrides)
    return payload


def finished_payload(task_id: str, finish_time: float, days_ago: float, **overrides) -> dict:
    completed_at = NOW - timedelta(days=days_ago)
    return task_payload(
        task_id,
        status="completed",
        isCompleted=True,
        finishTime=finish_time,
        completedAt=completed_at.isoformat(),
        **overrides,
    )


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_root(client):
    assert client.get("/").json()["status"] == "running"


def test_critical_path_from_depends_on(client):
    tasks = [
        task_payload("A", timeSpent=2),
        task_payload("B", timeSpent=3, dependsOn=["A"]),
        task_payload("C", timeSpent=1, dependsOn=["B"]),
    ]

    response = client.post("/analysis/critical-path", json={"tasks": tasks})

    assert response.status_code == 200
    data = response.json()
    assert data["max_finish"] == 6
    assert data["nodes"]["C"]["earliest_start"] == 5
    assert sorted(t["id"] for t in data["critical_path"]) == ["A", "B", "C"]
    assert data["error"] is None


def test_critical_path_reports_cycle(client):
    tasks = [task_payload("A", timeSpent=1), task_payload("B", timeSpent=1)]
    dependencies = [
        {"taskId": "A", "dependsOnTaskId": "B"},
        {"taskId": "B", "dependsOnTaskId": "A"},
    ]

    data = client.post(
        "/analysis/critical-path", json={"tasks": tasks, "dependencies": dependencies}
    ).json()

    assert data["error"]["kind"] == "cyclic_dependency"
    assert data["critical_path"] == []


def test_transition_refused_is_reported(client):
    body = {
        "task": task_payload("A", status="inProgress"),
        "fromStatus": "inProgress",
        "toStatus": "pendingApproval",
        "actorId": "intruder",
        "teamLeaderId": "leader",
        "proofUrl": "proof.png",
    }

    response = client.post("/transitions/validate", json=body)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["patch"] is None
    assert data["error"]["kind"] == "unauthorized"


def test_transition_accepted_returns_patch(client):
    body = {
        "task": task_payload("A", status="inProgress"),
        "from_status": "inProgress",
        "to_status": "pendingApproval",
        "actor_id": "user-1",
        "team_leader_id": "leader",
        "proof_url": "proof.png",
    }

    data = client.post("/transitions/validate", json=body).json()

    assert data["success"] is True
    assert data["patch"]["expected"] == {"status": "inProgress"}
    assert data["patch"]["changes"]["status"] == "pendingApproval"
    assert data["patch"]["activities"][0]["kind"] == "submitted"


def test_work_session_start(client):
    body = {"task": task_payload("A"), "action": "start", "userId": "user-1"}

    data = client.post("/work-sessions", json=body).json()

    assert data["success"] is True
    assert len(data["patch"]["changes"]["work_sessions"]) == 1


def test_estimate_and_trend(client):
    history = [
        finished_payload("h1", 5000, 3, priority="high"),
        finished_payload("h2", 4000, 2, priority="high"),
        finished_payload("h3", 3000, 1, priority="high"),
    ]

    estimate = client.post(
        "/analysis/estimate",
        json={"task": task_payload("new", priority="high"), "historicalTasks": history},
    ).json()
    trend = client.post("/analysis/trend", json={"tasks": history}).json()

    assert estimate["estimated_seconds"] == pytest.approx(4000)
    assert trend == {"trend": "improving", "description": "Getting Faster"}


def test_performance_and_velocity(client):
    tasks = [finished_payload("h1", 3600, 1), finished_payload("h2", 1800, 30)]
    period = {"start": (NOW - timedelta(weeks=4)).isoformat(), "end": NOW.isoformat()}

    metrics = client.post(
        "/analysis/performance", json={"userId": "user-1", "tasks": tasks, "period": period}
    ).json()
    velocity = client.post(
        "/analysis/velocity", json={"teamId": "team-1", "tasks": tasks}
    ).json()

    assert metrics["tasksCompleted"] == 2
    assert metrics["velocityScore"] == pytest.approx(0.5)
    assert velocity["completedPoints"] == 1
    assert velocity["plannedPoints"] == 1


def test_team_report(client):
    body = {
        "team": {"id": "team-1", "leaderId": "leader", "memberIds": ["user-1"]},
        "tasks": [finished_payload("h1", 3600, 1), task_payload("open")],
    }

    data = client.post("/analysis/team", json=body).json()

    assert data["average_completion_time"] == 3600
    assert data["analytics"]["completionRate"] == 0.5


def main():
    """Run all tests."""
    sys.exit(pytest.main([__file__, "-v"]))


if __name__ == "__main__":
    main()
