"""Delete workflow: the row goes first, then webhook and index cleanup."""

from repo_indexer.models import AnalysisRecord, RepositoryIntegration

WEBHOOK_URL = "http://backend.test/api/github/webhook/event"


def connect(client, auth, sample_repo) -> int:
    resp = client.post(
        "/api/github/save-integration",
        json={"repository": sample_repo, "accessToken": "ghp_repo_token"},
        headers=auth["headers"],
    )
    return resp.json()["repository"]["id"]


def delete(client, auth, integration_id):
    return client.delete(f"/api/github/repository/{integration_id}", headers=auth["headers"])


def steps_by_name(data) -> dict:
    return {s["name"]: s for s in data["steps"]}


def test_delete_removes_row_shadow_webhooks_and_index(client, auth, upstream, sample_repo, db, store):
    integration_id = connect(client, auth, sample_repo)
    upstream.add_hook("o/r", WEBHOOK_URL)  # a duplicate left by an older registration
    upstream.add_hook("o/r", "http://elsewhere.test/hook")

    resp = delete(client, auth, integration_id)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    steps = steps_by_name(data)
    assert steps["remove_webhook"]["ok"] is True
    assert steps["delete_index"]["ok"] is True

    assert [h["config"]["url"] for h in upstream.hooks["o/r"]] == ["http://elsewhere.test/hook"]
    assert upstream.delete_requests == [{"repoId": [str(integration_id)]}]

    db.expire_all()
    assert store.get_integration(integration_id) is None
    assert store.get_user(auth["user"]["id"]).github_repos == []


def test_delete_survives_webhook_removal_failure(client, auth, upstream, sample_repo, db, store):
    integration_id = connect(client, auth, sample_repo)
    upstream.hooks_fail = True

    resp = delete(client, auth, integration_id)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    steps = steps_by_name(data)
    assert steps["remove_webhook"]["ok"] is False
    # Index cleanup still ran
    assert steps["delete_index"]["ok"] is True
    assert len(upstream.delete_requests) == 1

    db.expire_all()
    assert store.get_integration(integration_id) is None


def test_delete_reports_index_failure(client, auth, upstream, sample_repo, db):
    integration_id = connect(client, auth, sample_repo)
    upstream.rag_status = 500

    data = delete(client, auth, integration_id).json()

    assert data["success"] is True
    assert steps_by_name(data)["delete_index"]["ok"] is False
    db.expire_all()
    assert db.query(RepositoryIntegration).count() == 0


def test_delete_cascades_analysis_history(client, auth, upstream, sample_repo, db):
    integration_id = connect(client, auth, sample_repo)
    client.post(
        f"/api/repositories/{integration_id}/analysis",
        json={"analysisId": "a-1", "overallScore": 80, "issuesFound": 3},
        headers=auth["headers"],
    )

    delete(client, auth, integration_id)

    db.expire_all()
    assert db.query(AnalysisRecord).count() == 0


def test_delete_of_unknown_integration_is_a_no_op(client, auth, upstream):
    resp = delete(client, auth, 12345)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert upstream.requests == []
