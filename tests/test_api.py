import json

import pytest
from fastapi.testclient import TestClient

from agents.base import agent_registry
from agents.diagnosis.agent import DiagnosisAgent
from agents.diagnosis.orchestrator import AnalysisOrchestrator
from agents.monitoring.agent import MonitoringAgent
from agents.monitoring.engine import MonitoringEngine
from api.app import create_app

from .conftest import FakeCompletionClient, FakePreprocessingService, diagnosis_text

IMAGE = "aGVsbG8="

CHECKPOINT = json.dumps({
    "analysis": {"overallProgress": "worsening", "severityChange": 1, "confidence": 70},
    "agentReasoning": "Spots are spreading to upper leaves.",
    "decision": {"action": "escalate", "reasoning": "Spread accelerating", "urgency": "critical"},
})

@pytest.fixture
def completion():
    return FakeCompletionClient()

@pytest.fixture
def client(completion):
    orchestrator = AnalysisOrchestrator(completion, preprocessing=FakePreprocessingService())
    agent_registry.register(DiagnosisAgent(orchestrator=orchestrator, cache_enabled=False))
    agent_registry.register(MonitoringAgent(engine=MonitoringEngine(completion)))
    try:
        with TestClient(create_app()) as test_client:
            yield test_client
    finally:
        agent_registry.unregister("diagnosis")
        agent_registry.unregister("monitoring")

def start_plan(client, completion):
    completion.responses.append("no strategy")
    response = client.post("/api/monitoring/start", json={
        "diagnosis": {"cropType": "Tomato", "diseases": [{"name": "Early Blight", "confidence": 80}]},
        "treatmentPlan": {"timeline": [{"day": 0, "action": "Copper spray"}]},
        "durationDays": 14,
    })
    assert response.status_code == 200
    return response.json()["data"]

class TestServiceEndpoints:
    def test_root(self, client):
        body = client.get("/").json()

        assert body["status"] == "healthy"
        assert set(body["agents"]) >= {"diagnosis", "monitoring"}

    def test_health(self, client):
        body = client.get("/api/health/").json()

        assert body["status"] == "healthy"
        assert "demo_mode" in body

    def test_agents_health(self, client):
        body = client.get("/api/health/agents").json()
        assert body["monitoring"]["status"] == "healthy"

class TestDiagnosisEndpoints:
    def test_analyze_returns_camel_case(self, client, completion):
        completion.responses.append(diagnosis_text(confidence=91))

        response = client.post("/api/diagnosis/analyze", json={"image": IMAGE, "enableTools": False})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["fastPath"] is True
        assert data["stageStatus"]["visualAnalysis"] == "completed"
        assert data["diagnosis"]["cropType"] == "Tomato"
        assert data["diagnosis"]["highlightedAreas"][0]["center"] == {"x": 0.4, "y": 0.5}

    def test_analyze_without_image_is_rejected(self, client, completion):
        response = client.post("/api/diagnosis/analyze", json={"image": "  "})

        assert response.status_code == 400
        assert completion.calls == []

    def test_upload_rejects_unsupported_type(self, client):
        response = client.post(
            "/api/diagnosis/analyze-image",
            files={"image": ("leaf.gif", b"GIF89a", "image/gif")},
        )
        assert response.status_code == 400

    def test_upload_runs_analysis(self, client, completion):
        completion.responses.append(diagnosis_text())

        response = client.post(
            "/api/diagnosis/analyze-image",
            files={"image": ("leaf.png", b"\x89PNG fake", "image/png")},
            data={"city": "Meknes", "language": "ar", "enable_tools": "false"},
        )

        assert response.status_code == 200
        assert response.json()["metadata"]["language"] == "ar"
        assert "Meknes" in completion.calls[0]["prompt"]

    def test_tools(self, client):
        body = client.get("/api/diagnosis/tools").json()

        assert body["count"] == 4
        assert {tool["name"] for tool in body["tools"]} >= {"get_weather_forecast", "query_crop_database"}

    def test_common_diseases(self, client):
        body = client.get("/api/diagnosis/diseases/tomato").json()

        assert body["success"] is True
        assert "Late Blight" in body["output"]["data"]

class TestMonitoringEndpoints:
    def test_start(self, client, completion):
        plan = start_plan(client, completion)

        assert plan["id"].startswith("mon_")
        assert plan["currentStatus"] == "active"
        assert plan["nextCheckpointDay"] == 3
        assert plan["continuityToken"]

    def test_checkpoint_advances_plan(self, client, completion):
        plan = start_plan(client, completion)
        completion.responses.append(CHECKPOINT)

        response = client.post("/api/monitoring/checkpoint", json={"plan": plan, "day": 3, "image": IMAGE})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["checkpoint"]["decision"]["action"] == "escalate"
        assert data["plan"]["currentStatus"] == "critical"
        assert data["plan"]["nextCheckpointDay"] == 7
        assert len(data["plan"]["checkpoints"]) == 1

    def test_completed_plan_conflicts(self, client, completion):
        plan = start_plan(client, completion)
        plan["currentStatus"] = "completed"

        response = client.post("/api/monitoring/checkpoint", json={"plan": plan, "day": 3, "image": IMAGE})
        assert response.status_code == 409

    def test_pause_and_invalid_resume(self, client, completion):
        plan = start_plan(client, completion)

        paused = client.post("/api/monitoring/pause", json={"plan": plan})
        assert paused.json()["data"]["currentStatus"] == "paused"

        assert client.post("/api/monitoring/resume", json={"plan": plan}).status_code == 409

    def test_decision_after_checkpoint(self, client, completion):
        plan = start_plan(client, completion)
        completion.responses.append(CHECKPOINT)
        plan = client.post("/api/monitoring/checkpoint", json={"plan": plan, "day": 3, "image": IMAGE}).json()["data"]["plan"]
        completion.responses.append("no decision today")

        response = client.post("/api/monitoring/decision", json={"plan": plan, "location": {"city": "Meknes"}})

        assert response.status_code == 200
        body = response.json()
        assert body["metadata"]["fallback"] is True
        assert body["data"]["checkpointDay"] == 3
        assert body["data"]["autonomousDecision"]["action"] == "continue_plan"
        assert body["data"]["toolsUsed"][0] == "get_weather_forecast"

    def test_decision_needs_a_checkpoint(self, client, completion):
        plan = start_plan(client, completion)

        response = client.post("/api/monitoring/decision", json={"plan": plan})
        assert response.status_code == 400

    def test_treatment_plan(self, client, completion):
        completion.responses.append("no plan")

        response = client.post("/api/monitoring/treatment-plan", json={
            "diagnosis": {"cropType": "Tomato", "diseases": [{"name": "Early Blight", "confidence": 80}]},
            "preferences": {"resourcePreference": "chemical"},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["metadata"]["fallback"] is True
        assert [step["day"] for step in body["data"]["timeline"]] == [1, 2, 5, 7, 10, 14]
        assert body["data"]["timeline"][1]["weatherNote"] == "Avoid if rain expected within 24 hours"
