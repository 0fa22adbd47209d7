from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from conftest import SAMPLE_CONFIG, ScriptedPlanner
from invocursor.app import create_app
from invocursor.errors import PlannerError
from invocursor.execution.limits import week_start
from invocursor.models.account import ApiKeyRecord
from invocursor.settings import Settings
from invocursor.utils import hash_password


ACME_KEY = "inv_acme00000000000000000000"
FREE_KEY = "inv_free00000000000000000000"
OTHER_KEY = "inv_other0000000000000000000"
GROWTH_KEY = "inv_growth000000000000000000"

ACTION = {
    "type": "action",
    "message": "Turning on dark mode",
    "plan": [
        {"type": "navigate", "target": "settings"},
        {"type": "toggle", "target": "#dark-mode", "value": True},
    ],
}


@pytest.fixture
def planner():
    return ScriptedPlanner()


@pytest.fixture
def client(configs_dir, repository, planner):
    repository.save_api_key(ApiKeyRecord(key=ACME_KEY, tier="starter", configs=["acme"]))
    repository.save_api_key(ApiKeyRecord(key=FREE_KEY, tier="free", configs=["*"]))
    repository.save_api_key(ApiKeyRecord(key=OTHER_KEY, configs=["other"]))
    repository.save_api_key(
        ApiKeyRecord(
            key=GROWTH_KEY,
            tier="growth",
            configs=["*"],
            analytics_password_hash=hash_password("pw"),
        )
    )
    settings = Settings(configs_dir=str(configs_dir), admin_secret="adm")
    app = create_app(settings, repository=repository, planner=planner)
    return TestClient(app)


def _headers(key):
    return {"X-API-Key": key}


class TestHealth:
    def test_ok(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["model"] == "scripted"
        assert body["apiKeySet"] is True
        assert body["database"] is True
        assert "timestamp" in body

    def test_unhealthy_database(self, client, repository, monkeypatch):
        monkeypatch.setattr(repository, "check_health", lambda: False)

        response = client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestPlan:
    def test_returns_plan(self, client, planner, repository):
        planner.outputs.append(ACTION["plan"])

        response = client.post(
            "/api/plan",
            json={"goal": "enable dark mode", "currentPage": "home", "configName": "acme"},
            headers=_headers(ACME_KEY),
        )

        assert response.status_code == 200
        assert response.json() == {"plan": ACTION["plan"]}
        assert response.headers["X-RateLimit-Remaining"] == "1499"
        assert response.headers["X-RateLimit-Tier"] == "starter"
        logs = repository.list_request_logs(key=ACME_KEY)
        assert [(e.goal, e.success) for e in logs] == [("enable dark mode", True)]

    def test_unknown_config(self, client, repository):
        response = client.post(
            "/api/plan",
            json={"goal": "x", "configName": "nope"},
            headers=_headers(FREE_KEY),
        )

        assert response.json() == {"error": "Config not found: nope"}
        assert repository.list_request_logs(key=FREE_KEY)[0].success is False

    def test_undecodable_config(self, client, planner, repository, configs_dir):
        (configs_dir / "broken.json").write_text("{ not json")

        response = client.post(
            "/api/plan",
            json={"goal": "x", "configName": "broken"},
            headers=_headers(FREE_KEY),
        )

        assert response.status_code == 200
        assert response.json() == {"error": "Config is invalid: broken"}
        assert planner.calls == []
        assert repository.list_request_logs(key=FREE_KEY)[0].success is False

    def test_planner_failure(self, client, planner):
        planner.outputs.append(PlannerError("upstream down"))

        response = client.post(
            "/api/plan", json={"goal": "x", "configName": "acme"}, headers=_headers(ACME_KEY)
        )

        assert response.json() == {"error": "upstream down"}

    def test_no_plan_in_output(self, client, planner):
        planner.outputs.append("I cannot help with that")

        response = client.post(
            "/api/plan", json={"goal": "x", "configName": "acme"}, headers=_headers(ACME_KEY)
        )

        assert response.json() == {"error": "No valid plan in response"}

    def test_config_not_allowed(self, client, planner, repository):
        response = client.post(
            "/api/plan", json={"goal": "x", "configName": "acme"}, headers=_headers(OTHER_KEY)
        )

        assert response.status_code == 403
        assert response.json() == {"error": "No access to this config"}
        assert response.headers["X-RateLimit-Limit"] == "1500"
        assert planner.calls == []
        assert repository.list_request_logs(key=OTHER_KEY)[0].success is False

    def test_unknown_key(self, client):
        response = client.post(
            "/api/plan", json={"goal": "x"}, headers=_headers("inv_bogus")
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

    def test_key_in_query(self, client, planner):
        planner.outputs.append([])
        response = client.post(
            f"/api/plan?apiKey={ACME_KEY}", json={"goal": "x", "configName": "acme"}
        )
        assert response.status_code == 200

    def test_weekly_limit(self, client, planner, repository):
        this_week = week_start(datetime.now(timezone.utc).date())
        repository.save_weekly_usage(FREE_KEY, this_week, 50)

        response = client.post(
            "/api/plan", json={"goal": "x", "configName": "acme"}, headers=_headers(FREE_KEY)
        )

        assert response.status_code == 429
        body = response.json()
        assert body["error"] == "Weekly rate limit exceeded"
        assert body["tier"] == "free"
        assert body["weeklyLimit"] == 50
        assert body["resetAt"] == "next Monday"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert planner.calls == []


class TestChat:
    def test_action(self, client, planner, repository):
        planner.outputs.append(ACTION)

        response = client.post(
            "/api/chat",
            json={"message": "dark mode please", "configName": "acme", "mode": "fast"},
            headers=_headers(ACME_KEY),
        )

        assert response.status_code == 200
        assert response.json() == ACTION
        assert planner.calls[0][2] is True
        assert repository.list_request_logs(key=ACME_KEY)[0].goal == "dark mode please"

    def test_apology_on_bad_output(self, client, planner, repository):
        planner.outputs.append("not json at all")

        response = client.post(
            "/api/chat",
            json={"message": "hello", "configName": "acme"},
            headers=_headers(ACME_KEY),
        )

        assert response.json()["type"] == "error"
        assert repository.list_request_logs(key=ACME_KEY)[0].success is False

    def test_without_key_uses_local_dev_key(self, client, planner):
        planner.outputs.append({"type": "status", "message": "All good"})

        response = client.post("/api/chat", json={"message": "status?", "configName": "acme"})

        assert response.json() == {"type": "status", "message": "All good"}
        assert response.headers["X-RateLimit-Tier"] == "growth"

    def test_config_not_allowed(self, client, repository):
        response = client.post(
            "/api/chat",
            json={"message": "hunter2", "configName": "acme"},
            headers=_headers(OTHER_KEY),
        )

        assert response.status_code == 403
        assert response.json() == {"error": "No access to this config"}
        logs = repository.list_request_logs(key=OTHER_KEY)
        assert [(e.config, e.goal, e.success) for e in logs] == [
            ("acme", "hunter2", False)
        ]

    def test_config_not_allowed_while_awaiting_password(self, client, repository):
        pinned = "inv_pinned000000000000000000"
        repository.save_api_key(
            ApiKeyRecord(
                key=pinned,
                tier="growth",
                configs=["acme"],
                analytics_password_hash=hash_password("pw"),
            )
        )
        prompt = client.post(
            "/api/chat",
            json={"message": "Export analytics please", "configName": "acme"},
            headers=_headers(pinned),
        ).json()
        assert prompt["type"] == "question"

        response = client.post(
            "/api/chat",
            json={"message": "pw", "configName": "other"},
            headers=_headers(pinned),
        )

        assert response.status_code == 403
        logs = repository.list_request_logs(key=pinned)
        rejected = [e for e in logs if e.config == "other"]
        assert [(e.goal, e.success) for e in rejected] == [("", False)]
        assert all(e.goal != "pw" for e in logs)

    def test_analytics_export_flow(self, client, planner, repository):
        first = client.post(
            "/api/chat",
            json={"message": "Export analytics please", "configName": "acme"},
            headers=_headers(GROWTH_KEY),
        ).json()
        assert first["type"] == "question"

        wrong = client.post(
            "/api/chat",
            json={"message": "guess", "configName": "acme"},
            headers=_headers(GROWTH_KEY),
        ).json()
        assert wrong["type"] == "question"

        done = client.post(
            "/api/chat",
            json={"message": "pw", "configName": "acme"},
            headers=_headers(GROWTH_KEY),
        ).json()

        assert done["type"] == "analytics_download"
        assert done["downloadData"]["filename"].endswith(".xlsx")
        assert done["downloadData"]["mimeType"].startswith("application/vnd.openxml")
        assert planner.calls == []
        goals = [e.goal for e in repository.list_request_logs(key=GROWTH_KEY)]
        assert goals == ["Export analytics please"]


class TestConfigs:
    def test_list(self, client):
        assert client.get("/api/configs").json() == {"configs": ["acme"]}

    def test_get(self, client):
        assert client.get("/api/config/acme").json() == SAMPLE_CONFIG

    def test_missing(self, client):
        response = client.get("/api/config/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Config not found"}

    def test_undecodable(self, client, configs_dir):
        (configs_dir / "broken.yaml").write_text("pages: [unclosed\n")

        response = client.get("/api/config/broken")

        assert response.status_code == 500
        assert response.json() == {"error": "Config is invalid: broken"}


def test_stats(client, planner):
    planner.outputs.append([])
    client.post("/api/plan", json={"goal": "x", "configName": "acme"}, headers=_headers(ACME_KEY))
    planner.outputs.append(PlannerError("down"))
    client.post("/api/plan", json={"goal": "y", "configName": "acme"}, headers=_headers(ACME_KEY))

    stats = client.get("/api/stats", headers=_headers(ACME_KEY)).json()

    assert stats == {
        "totalRequests": 2,
        "weekRequests": 2,
        "successRate": 50,
        "tier": "starter",
        "weeklyLimit": 1500,
        "rateRemaining": 1497,
    }


class TestAdmin:
    def test_create_key(self, client, repository):
        response = client.post(
            "/admin/keys",
            json={"adminSecret": "adm", "name": "Shop", "tier": "growth", "configs": ["shop"]},
        )

        body = response.json()
        assert body["apiKey"].startswith("inv_")
        assert body["tier"] == "growth"
        assert body["weeklyLimit"] == 6500
        assert repository.get_api_key(body["apiKey"]).configs == ["shop"]

    def test_create_key_requires_secret(self, client):
        response = client.post("/admin/keys", json={"adminSecret": "nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid admin secret"}

    def test_create_key_invalid_tier(self, client):
        response = client.post("/admin/keys", json={"adminSecret": "adm", "tier": "gold"})
        assert response.status_code == 400
        assert "Invalid tier" in response.json()["error"]

    def test_list_keys(self, client):
        response = client.get("/admin/keys", headers={"X-Admin-Secret": "adm"})

        body = response.json()
        assert ACME_KEY not in body["keys"]
        entry = body["keys"][ACME_KEY[:10] + "..."]
        assert entry["tier"] == "starter"
        assert entry["configs"] == ["acme"]
        assert entry["analyticsPassword"] is False
        assert body["keys"][GROWTH_KEY[:10] + "..."]["analyticsPassword"] is True
        assert body["tiers"]["growth"]["analyticsExport"] is True

    def test_list_keys_requires_secret(self, client):
        assert client.get("/admin/keys").status_code == 401

    def test_set_analytics_password(self, client):
        response = client.post(
            f"/admin/keys/{ACME_KEY[:10]}/analytics-password",
            json={"password": "new-pw"},
            headers={"X-Admin-Secret": "adm"},
        )
        assert response.status_code == 200

        listing = client.get("/admin/keys", headers={"X-Admin-Secret": "adm"}).json()
        assert listing["keys"][ACME_KEY[:10] + "..."]["analyticsPassword"] is True

    def test_set_password_unknown_key(self, client):
        response = client.post(
            "/admin/keys/inv_zzz/analytics-password",
            json={"adminSecret": "adm", "password": "x"},
        )
        assert response.status_code == 404

    def test_disabled_without_secret(self, configs_dir, repository, planner):
        app = create_app(
            Settings(configs_dir=str(configs_dir)), repository=repository, planner=planner
        )
        response = TestClient(app).post("/admin/keys", json={"adminSecret": ""})
        assert response.status_code == 401


def test_cors_exposes_rate_headers(client, planner):
    planner.outputs.append([])
    response = client.post(
        "/api/plan",
        json={"goal": "x", "configName": "acme"},
        headers={**_headers(ACME_KEY), "Origin": "http://host.example"},
    )
    exposed = response.headers["access-control-expose-headers"]
    assert "X-RateLimit-Remaining" in exposed
