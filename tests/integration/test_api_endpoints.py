"""API tests for the group review endpoints."""

import uuid

import pytest
from fastapi.testclient import TestClient

from tests.factories import create_application, create_user, member_for, start_review

pytestmark = [pytest.mark.integration, pytest.mark.db]


def as_user(user):
    return {"X-User-ID": str(user.id)}


@pytest.fixture
def review(db_session, approval_service):
    """A committed review, so failed requests roll back to this point."""
    review = start_review(db_session, approval_service)
    db_session.commit()
    return review


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_basic_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_liveness_probe(self, client: TestClient):
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_readiness_probe(self, client: TestClient):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "healthy"


class TestAuthentication:
    """Test caller identification."""

    def test_missing_header(self, client: TestClient, review):
        response = client.get(f"/api/applications/{review.application.id}/approval")
        assert response.status_code == 401

    def test_malformed_header(self, client: TestClient, review):
        response = client.get(
            f"/api/applications/{review.application.id}/approval",
            headers={"X-User-ID": "not-a-uuid"},
        )
        assert response.status_code == 401

    def test_unknown_user(self, client: TestClient, review):
        response = client.get(
            f"/api/applications/{review.application.id}/approval",
            headers={"X-User-ID": str(uuid.uuid4())},
        )
        assert response.status_code == 401


class TestGroupEndpoints:
    """Test approval group administration."""

    def test_create_and_get_group(self, client: TestClient, db_session):
        admin = create_user(db_session)
        reviewers = [create_user(db_session) for _ in range(2)]
        boss = create_user(db_session)
        db_session.commit()

        response = client.post(
            "/api/approval-groups",
            json={
                "name": "Electrical",
                "members": [{"user_id": str(u.id)} for u in reviewers],
                "final_approver_user_id": str(boss.id),
            },
            headers=as_user(admin),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Electrical"
        assert sorted(m["role"] for m in data["members"]) == ["final_approver", "regular", "regular"]

        response = client.get(f"/api/approval-groups/{data['id']}", headers=as_user(admin))
        assert response.status_code == 200
        assert response.json()["id"] == data["id"]

        response = client.get("/api/approval-groups?search=elec", headers=as_user(admin))
        assert [g["name"] for g in response.json()] == ["Electrical"]

    def test_create_group_validation(self, client: TestClient, db_session):
        admin = create_user(db_session)
        boss = create_user(db_session)
        db_session.commit()

        response = client.post(
            "/api/approval-groups",
            json={
                "name": "Overlap",
                "members": [{"user_id": str(boss.id)}],
                "final_approver_user_id": str(boss.id),
            },
            headers=as_user(admin),
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_unknown_group(self, client: TestClient, db_session):
        admin = create_user(db_session)
        db_session.commit()
        response = client.get(f"/api/approval-groups/{uuid.uuid4()}", headers=as_user(admin))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_deactivate_member(self, client: TestClient, db_session, review):
        seat = member_for(db_session, review.group, review.reviewers[1])
        response = client.post(
            f"/api/approval-groups/{review.group.id}/members/{seat.id}/deactivate",
            headers=as_user(review.final_approver),
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        summary = client.get(
            f"/api/applications/{review.application.id}/approval",
            headers=as_user(review.final_approver),
        ).json()
        assert summary["statistics"]["total_members"] == 1

    def test_deactivate_final_approver_conflict(self, client: TestClient, db_session, review):
        seat = member_for(db_session, review.group, review.final_approver)
        response = client.post(
            f"/api/approval-groups/{review.group.id}/members/{seat.id}/deactivate",
            headers=as_user(review.final_approver),
        )
        assert response.status_code == 409


class TestDecisionEndpoints:
    """Test voting through the API."""

    def test_assign_application(self, client: TestClient, db_session, review):
        application = create_application(db_session)
        db_session.commit()

        response = client.post(
            f"/api/applications/{application.id}/assignment",
            json={"group_id": str(review.group.id)},
            headers=as_user(review.final_approver),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["total_members"] == 2
        assert data["pending_count"] == 2
        assert data["is_active"] is True

    def test_full_approval(self, client: TestClient, review):
        app_id = review.application.id
        m1, m2 = review.reviewers

        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(m1))
        assert response.status_code == 200
        assert response.json()["approved_count"] == 1

        response = client.post(
            f"/api/applications/{app_id}/approve", json={"comment": "Looks good"}, headers=as_user(m2)
        )
        assert response.json()["ready_for_final_approval"] is True

        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(review.final_approver))
        assert response.status_code == 200
        data = response.json()
        assert data["application_status"] == "approved"
        assert data["is_final_approver"] is True

        summary = client.get(f"/api/applications/{app_id}/approval", headers=as_user(m1)).json()
        assert summary["final_approval"]["decision"] == "approved"

    def test_error_statuses(self, client: TestClient, db_session, review):
        app_id = review.application.id
        m1 = review.reviewers[0]
        outsider = create_user(db_session)
        db_session.commit()

        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(outsider))
        assert response.status_code == 403
        assert response.json()["error"] == "unauthorized"

        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(review.final_approver))
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

        client.post(f"/api/applications/{app_id}/reject", json={}, headers=as_user(m1))
        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(m1))
        assert response.status_code == 409

        response = client.post(f"/api/applications/{uuid.uuid4()}/approve", json={}, headers=as_user(m1))
        assert response.status_code == 404

    def test_failed_request_is_rolled_back(self, client: TestClient, db_session, review):
        app_id = review.application.id
        response = client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(review.final_approver))
        assert response.status_code == 409

        summary = client.get(f"/api/applications/{app_id}/approval", headers=as_user(review.final_approver)).json()
        assert summary["application_status"] == "under_review"
        assert summary["final_approver"]["decision_status"] == "pending"

    def test_revoke(self, client: TestClient, review):
        app_id = review.application.id
        m1, m2 = review.reviewers
        for user in (m1, m2, review.final_approver):
            client.post(f"/api/applications/{app_id}/approve", json={}, headers=as_user(user))

        response = client.post(f"/api/applications/{app_id}/revoke", json={"reason": ""}, headers=as_user(m1))
        assert response.status_code == 422

        response = client.post(f"/api/applications/{app_id}/revoke", json={"reason": "   "}, headers=as_user(m1))
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

        response = client.post(
            f"/api/applications/{app_id}/revoke", json={"reason": "Survey updated"}, headers=as_user(m1)
        )
        assert response.status_code == 200
        data = response.json()
        assert data["previous_status"] == "approved"
        assert data["new_status"] == "under_review"
        assert data["final_approval_removed"] is True

        response = client.get(f"/api/applications/{app_id}/revocations", headers=as_user(m1))
        assert response.status_code == 200
        assert {r["reason"] for r in response.json()} >= {"Survey updated"}


class TestIssueEndpoints:
    """Test issue endpoints."""

    def test_issue_lifecycle(self, client: TestClient, review, discussions):
        app_id = review.application.id
        m1, m2 = review.reviewers

        response = client.post(
            f"/api/applications/{app_id}/issues",
            json={"title": "Fire exits", "description": "Second exit not shown", "priority": "high"},
            headers=as_user(m1),
        )
        assert response.status_code == 201
        issue = response.json()
        assert issue["priority"] == "high"
        assert issue["assignment_type"] == "collaborative"
        assert issue["chat_thread_id"] is not None
        assert len(discussions.threads) == 1

        response = client.get(f"/api/applications/{app_id}/issues?resolved=false", headers=as_user(m2))
        assert [i["id"] for i in response.json()] == [issue["id"]]

        response = client.post(
            f"/api/issues/{issue['id']}/resolve", json={"resolution": "Exit added"}, headers=as_user(m2)
        )
        assert response.status_code == 200
        assert response.json()["is_resolved"] is True

        response = client.post(f"/api/issues/{issue['id']}/resolve", json={}, headers=as_user(m2))
        assert response.status_code == 409

        response = client.post(f"/api/issues/{issue['id']}/reopen", headers=as_user(m1))
        assert response.status_code == 200
        assert response.json()["is_resolved"] is False

        response = client.get(f"/api/issues/{issue['id']}", headers=as_user(m1))
        assert response.json()["resolution"] is None

    def test_inconsistent_assignment(self, client: TestClient, review):
        response = client.post(
            f"/api/applications/{review.application.id}/issues",
            json={
                "title": "Structural",
                "description": "Beam sizing",
                "assignment_type": "group_member",
            },
            headers=as_user(review.reviewers[0]),
        )
        assert response.status_code == 422

    def test_discussion_service_down(self, client: TestClient, review, discussions):
        discussions.fail_on_create = True
        response = client.post(
            f"/api/applications/{review.application.id}/issues",
            json={"title": "Fire exits", "description": "Second exit not shown"},
            headers=as_user(review.reviewers[0]),
        )
        assert response.status_code == 502
        assert response.json()["error"] == "discussion_service_error"

        response = client.get(
            f"/api/applications/{review.application.id}/issues", headers=as_user(review.reviewers[0])
        )
        assert response.json() == []
