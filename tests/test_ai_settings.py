"""
Tests for the admin AI settings and usage statistics endpoints.
"""
from lunaxcode.services.storage import SqlAlchemyStorage
from lunaxcode.services.usage_service import log_ai_usage
from tests.fakes import ANTHROPIC_KEY, GOOGLE_KEY, OPENAI_KEY, auth_headers, make_setting


def _admin(admin_user):
    return auth_headers(admin_user.email)


def test_settings_require_admin(client, client_user):
    response = client.get("/admin/ai-settings", headers=auth_headers(client_user.email))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_settings_require_authentication(client):
    assert client.get("/admin/ai-settings").status_code == 401


def test_list_settings_masks_keys(client, admin_user, db_session):
    make_setting(db_session, api_key=OPENAI_KEY)

    body = client.get("/admin/ai-settings", headers=_admin(admin_user)).json()

    setting = body["settings"][0]
    assert setting["apiKey"] == f"{OPENAI_KEY[:8]}...{OPENAI_KEY[-4:]}"
    assert OPENAI_KEY not in str(body)
    assert set(body["supportedProviders"]) == {"openai", "anthropic", "google", "deepseek", "groq", "together"}
    assert body["supportedProviders"]["anthropic"]["requiresProxy"] is True


def test_create_setting_with_defaults(client, admin_user, db_session):
    response = client.post("/admin/ai-settings", json={"provider": "google", "apiKey": GOOGLE_KEY},
                           headers=_admin(admin_user))

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Google Gemini settings created"
    setting = body["setting"]
    assert setting["model"] == "gemini-1.5-flash"
    assert setting["maxGenerationsPerUser"] == 3
    assert setting["isActive"] is True
    assert setting["createdBy"] == admin_user.id


def test_activating_a_setting_deactivates_the_others(client, admin_user, db_session):
    headers = _admin(admin_user)
    client.post("/admin/ai-settings", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers)
    response = client.post("/admin/ai-settings",
                           json={"provider": "anthropic", "apiKey": ANTHROPIC_KEY, "maxGenerationsPerUser": 5},
                           headers=headers)
    assert response.status_code == 200

    settings = SqlAlchemyStorage(db_session).list_settings()
    assert [(s.provider, s.is_active) for s in settings] == [("openai", False), ("anthropic", True)]


def test_resaving_reports_update(client, admin_user):
    headers = _admin(admin_user)
    client.post("/admin/ai-settings", json={"provider": "openai", "apiKey": OPENAI_KEY}, headers=headers)

    response = client.post("/admin/ai-settings",
                           json={"provider": "openai", "apiKey": OPENAI_KEY, "model": "gpt-4o", "maxGenerationsPerUser": 0},
                           headers=headers)

    body = response.json()
    assert body["message"] == "OpenAI settings updated"
    assert body["setting"]["model"] == "gpt-4o"
    assert body["setting"]["maxGenerationsPerUser"] == 1


def test_create_setting_validation(client, admin_user):
    headers = _admin(admin_user)

    missing = client.post("/admin/ai-settings", json={"provider": "openai"}, headers=headers)
    assert missing.status_code == 400
    assert missing.json()["code"] == "INVALID_REQUEST"

    unknown = client.post("/admin/ai-settings", json={"provider": "cohere", "apiKey": "x"}, headers=headers)
    assert unknown.json()["code"] == "INVALID_PROVIDER"
    assert "openai" in unknown.json()["supportedProviders"]

    wrong_prefix = client.post("/admin/ai-settings", json={"provider": "anthropic", "apiKey": OPENAI_KEY},
                               headers=headers)
    assert wrong_prefix.json()["code"] == "INVALID_API_KEY"
    assert 'start with "sk-ant-"' in wrong_prefix.json()["error"]

    bad_model = client.post("/admin/ai-settings",
                            json={"provider": "openai", "apiKey": OPENAI_KEY, "model": "gpt-2"}, headers=headers)
    assert bad_model.json()["code"] == "INVALID_MODEL"
    assert "gpt-4o-mini" in bad_model.json()["validModels"]


def test_patch_setting(client, admin_user, db_session):
    make_setting(db_session, provider="openai", active=True)
    make_setting(db_session, provider="google", api_key=GOOGLE_KEY, model="gemini-1.5-flash", active=False)
    headers = _admin(admin_user)

    response = client.patch("/admin/ai-settings",
                            json={"provider": "google", "isActive": True, "maxGenerationsPerUser": -4},
                            headers=headers)

    assert response.status_code == 200
    assert response.json()["setting"]["maxGenerationsPerUser"] == 1
    storage = SqlAlchemyStorage(db_session)
    assert storage.get_active_setting().provider == "google"
    assert storage.get_setting("openai").is_active is False


def test_patch_setting_errors(client, admin_user):
    headers = _admin(admin_user)

    assert client.patch("/admin/ai-settings", json={"isActive": True}, headers=headers).status_code == 400
    missing = client.patch("/admin/ai-settings", json={"provider": "groq", "isActive": True}, headers=headers)
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_delete_setting(client, admin_user, db_session):
    make_setting(db_session)
    headers = _admin(admin_user)

    assert client.delete("/admin/ai-settings", headers=headers).status_code == 400
    response = client.delete("/admin/ai-settings", params={"provider": "openai"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "openai settings removed"
    assert client.delete("/admin/ai-settings", params={"provider": "openai"}, headers=headers).status_code == 404


def test_usage_views(client, admin_user, client_user, db_session):
    make_setting(db_session, limit=5)
    storage = SqlAlchemyStorage(db_session)
    log_ai_usage(storage, client_user.id, "prd", "openai", "gpt-4o-mini", "success", total_tokens=100)
    log_ai_usage(storage, client_user.id, "tasks", "openai", "gpt-4o-mini", "error", error_message="boom")
    headers = _admin(admin_user)

    summary = client.get("/admin/ai-usage", headers=headers).json()
    assert summary["summary"]["totalGenerations"] == 2
    assert summary["summary"]["failedGenerations"] == 1
    assert summary["summary"]["maxGenerationsPerUser"] == 5
    assert summary["recentLogs"][0]["generationType"] == "tasks"

    users = client.get("/admin/ai-usage", params={"view": "users"}, headers=headers).json()
    assert users["users"] == [{
        "userId": client_user.id,
        "name": "Test User",
        "email": "client@example.com",
        "role": "client",
        "totalGenerations": 1,
        "remaining": 4,
        "limit": 5,
    }]

    logs = client.get("/admin/ai-usage", params={"view": "logs", "page": 1, "limit": 1}, headers=headers).json()
    assert logs["pagination"]["totalPages"] == 2
    assert logs["logs"][0]["status"] == "error"

    invalid = client.get("/admin/ai-usage", params={"view": "chart"}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "INVALID_VIEW"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
