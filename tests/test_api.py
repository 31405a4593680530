"""
Tests for the HTTP surface.

These tests verify:
1. AUTH: login, bearer tokens and role gates
2. ENVELOPE: every error renders as {"error": kind, "message": ...}
3. SHAPES: camelCase bodies, 201 on create, plain arrays on list
4. OUTBOX: push work reaches the dispatcher only after the request commits
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from conftest import PASSWORD, auth_headers

CALL_OUTS = "/api/personnel/call-outs"
INCIDENTS = "/api/personnel/incidents"


async def create_call_out(client, user, **body):
    payload = {"title": "Lost hiker", "message": "Meet at the trailhead"}
    payload.update(body)
    response = await client.post(CALL_OUTS, json=payload, headers=auth_headers(user))
    assert response.status_code == 201
    return response.json()


# =============================================================================
# TEST: AUTH
# =============================================================================


class TestAuth:
    async def test_login_returns_token_pair(self, client, member_a):
        response = await client.post(
            "/api/auth/login",
            json={"emailOrPhone": member_a.email, "password": PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["refreshToken"]
        assert body["user"]["id"] == str(member_a.id)
        assert body["user"]["role"] == "member"

    async def test_wrong_password(self, client, member_a):
        response = await client.post(
            "/api/auth/login",
            json={"emailOrPhone": member_a.email, "password": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    async def test_refresh_issues_new_access_token(self, client, member_a):
        login = await client.post(
            "/api/auth/login",
            json={"emailOrPhone": member_a.email, "password": PASSWORD},
        )
        response = await client.post(
            "/api/auth/refresh",
            json={"refreshToken": login.json()["refreshToken"]},
        )

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(member_a.id)

    async def test_access_token_cannot_refresh(self, client, member_a):
        token = auth_headers(member_a)["Authorization"].split()[1]
        response = await client.post("/api/auth/refresh", json={"refreshToken": token})
        assert response.status_code == 401

    async def test_verify(self, client, officer):
        response = await client.get("/api/auth/verify", headers=auth_headers(officer))

        assert response.status_code == 200
        assert response.json() == {"valid": True, "userId": str(officer.id), "role": "officer"}

    async def test_missing_token(self, client, team):
        response = await client.get(CALL_OUTS)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": "Not authenticated"}

    async def test_garbage_token(self, client, team):
        response = await client.get(CALL_OUTS, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


# =============================================================================
# TEST: ERROR ENVELOPE
# =============================================================================


class TestErrorEnvelope:
    async def test_member_cannot_create_call_out(self, client, member_a):
        response = await client.post(
            CALL_OUTS,
            json={"title": "x", "message": "y"},
            headers=auth_headers(member_a),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    async def test_unknown_call_out(self, client, member_a):
        response = await client.get(f"{CALL_OUTS}/{uuid4()}", headers=auth_headers(member_a))

        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"

    async def test_invalid_body(self, client, officer):
        response = await client.post(CALL_OUTS, json={"title": ""}, headers=auth_headers(officer))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "ValidationError"
        assert "message" in body

    async def test_closed_call_out_is_conflict(self, client, officer, member_a):
        call_out = await create_call_out(client, officer)
        await client.post(
            f"/api/admin/call-outs/{call_out['id']}/close",
            json={"outcome": "completed"},
            headers=auth_headers(officer),
        )

        response = await client.post(
            f"{CALL_OUTS}/{call_out['id']}/respond",
            json={"status": "available"},
            headers=auth_headers(member_a),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "CallOutClosed"

    async def test_null_required_report_field_is_validation_error(self, client, member_a):
        headers = auth_headers(member_a)
        created = await client.post(
            "/api/callout-reports",
            json={"date": "2026-01-14T09:30:00Z", "incidentType": "avalanche"},
            headers=headers,
        )
        assert created.status_code == 201

        response = await client.put(
            f"/api/callout-reports/{created.json()['id']}",
            json={"incidentType": None},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"


# =============================================================================
# TEST: CALL-OUTS
# =============================================================================


class TestCallOutRoutes:
    async def test_create_is_camel_case(self, client, officer):
        body = await create_call_out(client, officer, callOutType="unit", targetUnit="Team A")

        assert body["status"] == "active"
        assert body["callOutType"] == "unit"
        assert body["targetUnit"] == "Team A"
        assert body["createdBy"] == str(officer.id)
        assert body["responseCount"] == 0
        assert body["isExpired"] is False
        assert body["responses"] == []

    async def test_naive_expiry_is_read_as_utc(self, client, officer):
        naive = (datetime.now(timezone.utc) + timedelta(hours=1)).replace(tzinfo=None)

        body = await create_call_out(client, officer, expiresAt=naive.isoformat())

        assert body["isExpired"] is False
        assert body["expiresAt"].endswith(("Z", "+00:00"))

    async def test_list_is_plain_array(self, client, officer, member_a):
        await create_call_out(client, officer)

        response = await client.get(CALL_OUTS, headers=auth_headers(member_a))

        assert response.status_code == 200
        body = response.json()
        assert isinstance(body, list)
        assert len(body) == 1

    async def test_status_filter(self, client, officer, member_a):
        await create_call_out(client, officer)

        response = await client.get(
            CALL_OUTS, params={"status": "completed"}, headers=auth_headers(member_a)
        )
        assert response.json() == []

    async def test_respond_then_update(self, client, officer, member_a):
        call_out = await create_call_out(client, officer)
        url = f"{CALL_OUTS}/{call_out['id']}/respond"

        first = await client.post(url, json={"status": "available"}, headers=auth_headers(member_a))
        second = await client.post(
            url, json={"status": "en_route", "notes": "10 min"}, headers=auth_headers(member_a)
        )

        assert first.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert second.json()["status"] == "en_route"

        detail = await client.get(f"{CALL_OUTS}/{call_out['id']}", headers=auth_headers(officer))
        assert detail.json()["responseCount"] == 1

    async def test_officer_lists_responses(self, client, officer, member_a, member_b):
        call_out = await create_call_out(client, officer)
        for user in (member_a, member_b):
            await client.post(
                f"{CALL_OUTS}/{call_out['id']}/respond",
                json={"status": "available"},
                headers=auth_headers(user),
            )

        response = await client.get(
            f"/api/admin/call-outs/{call_out['id']}/responses", headers=auth_headers(officer)
        )
        assert {r["userId"] for r in response.json()} == {str(member_a.id), str(member_b.id)}

        forbidden = await client.get(
            f"/api/admin/call-outs/{call_out['id']}/responses", headers=auth_headers(member_a)
        )
        assert forbidden.status_code == 403

    async def test_close_twice_returns_same(self, client, officer):
        call_out = await create_call_out(client, officer)
        url = f"/api/admin/call-outs/{call_out['id']}/close"

        first = await client.post(url, json={"outcome": "cancelled"}, headers=auth_headers(officer))
        second = await client.post(url, json={"outcome": "completed"}, headers=auth_headers(officer))

        assert first.json()["status"] == "cancelled"
        assert second.json()["status"] == "cancelled"


# =============================================================================
# TEST: INCIDENTS
# =============================================================================


class TestIncidentRoutes:
    async def test_duplicate_resource_is_conflict(self, client, officer, member_a):
        created = await client.post(
            INCIDENTS,
            json={"title": "Swiftwater", "type": "water"},
            headers=auth_headers(officer),
        )
        assert created.status_code == 201
        incident = created.json()
        assert incident["type"] == "water"

        url = f"{INCIDENTS}/{incident['id']}/resources"
        payload = {
            "resourceType": "personnel",
            "resourceName": member_a.name,
            "resourceId": str(member_a.id),
        }
        first = await client.post(url, json=payload, headers=auth_headers(officer))
        second = await client.post(url, json=payload, headers=auth_headers(officer))

        assert first.status_code == 201
        assert first.json()["status"] == "assigned"
        assert second.status_code == 409
        assert second.json()["error"] == "ResourceAlreadyAssigned"

    async def test_member_cannot_open_incident(self, client, member_a):
        response = await client.post(
            INCIDENTS, json={"title": "x", "type": "y"}, headers=auth_headers(member_a)
        )
        assert response.status_code == 403


# =============================================================================
# TEST: NOTIFICATIONS & OUTBOX
# =============================================================================


class TestNotificationRoutes:
    async def test_push_scheduled_after_request(self, client, dispatcher, officer):
        await create_call_out(client, officer)

        assert len(dispatcher.scheduled) == 1
        assert dispatcher.scheduled[0].notification_type == "callout"

    async def test_inbox_flow(self, client, officer, member_a):
        await create_call_out(client, officer)
        headers = auth_headers(member_a)

        count = await client.get("/api/notifications/unread-count", headers=headers)
        assert count.json() == {"count": 1}

        inbox = (await client.get("/api/notifications", headers=headers)).json()
        assert inbox[0]["type"] == "callout"
        assert inbox[0]["isRead"] is False

        read = await client.post(f"/api/notifications/{inbox[0]['id']}/read", headers=headers)
        assert read.status_code == 204

        unread = await client.get("/api/notifications", params={"isRead": "false"}, headers=headers)
        assert unread.json() == []

        deleted = await client.delete(f"/api/notifications/{inbox[0]['id']}", headers=headers)
        assert deleted.status_code == 204

    async def test_read_all(self, client, officer, member_a):
        await create_call_out(client, officer)
        headers = auth_headers(member_a)

        response = await client.post("/api/notifications/read-all", headers=headers)

        assert response.status_code == 204
        count = await client.get("/api/notifications/unread-count", headers=headers)
        assert count.json() == {"count": 0}


# =============================================================================
# TEST: PUBLIC & HEALTH
# =============================================================================


class TestPublic:
    async def test_public_status_needs_no_token(self, client):
        response = await client.get("/api/public/sar/status")

        assert response.status_code == 200
        body = response.json()
        assert body["active"] is False
        assert body["missions"] == []

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
