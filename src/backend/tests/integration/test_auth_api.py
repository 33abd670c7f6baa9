"""
Integration tests for administrator login/logout and the dashboard socket.

Tests:
- Login sets both cookies and they authorize later requests
- Missing and wrong credentials
- Logout clears the cookies
- Socket rejects unauthenticated clients with connect_error and code 4001
- Authenticated socket receives the initial snapshot and answers requests
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app import create_app
from core.config import settings
from core.dependencies import get_snapshot_provider
from db.models import HostelComplaint
from tests.factories import ComplaintFactory, auth_cookies, persist

API = "/api/v1"
SOCKET = settings.websocket.path


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_sets_cookies(self, client, db_session):
        await persist(db_session, ComplaintFactory.create(HostelComplaint, hostel_number="H1"))

        response = await client.post(
            f"{API}/auth/login", json={"username": "warden", "password": "secret"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "role": "H1",
            "message": "User authenticated successfully",
        }
        assert settings.security.identity_cookie_name in response.cookies
        assert settings.security.role_cookie_name in response.cookies

        listing = await client.get(f"{API}/complaints/hostel")
        assert listing.status_code == 200
        assert len(listing.json()["complaints"]) == 1

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        response = await client.post(
            f"{API}/auth/login", json={"username": "warden", "password": "guess"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid Username or Password"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client):
        response = await client.post(f"{API}/auth/login", json={"username": "warden"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_logout_clears_cookies(self, client):
        await client.post(
            f"{API}/auth/login", json={"username": "chief", "password": "chief-pass"}
        )

        response = await client.post(f"{API}/auth/logout")

        assert response.status_code == 200
        assert response.json()["success"] is True
        after = await client.get(f"{API}/complaints/hostel")
        assert after.status_code == 401


class TestDashboardSocket:
    @pytest.fixture
    def socket_client(self, stub_provider):
        app = create_app()
        app.dependency_overrides[get_snapshot_provider] = lambda: stub_provider
        return TestClient(app)

    def test_rejects_missing_cookies(self, socket_client):
        with socket_client.websocket_connect(SOCKET) as ws:
            message = ws.receive_json()
            assert message == {
                "event": "connect_error",
                "data": {"message": "Not authorized, no token"},
            }
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 4001

    def test_rejects_role_without_categories(self, socket_client):
        socket_client.cookies.update(auth_cookies("student"))
        with socket_client.websocket_connect(SOCKET) as ws:
            message = ws.receive_json()
            assert message["event"] == "connect_error"
            assert message["data"]["message"] == "Unauthorized access"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 4001

    def test_initial_snapshot_and_requests(self, socket_client, stub_provider):
        socket_client.cookies.update(auth_cookies("H1", username="warden"))
        with socket_client.websocket_connect(SOCKET) as ws:
            resolution = ws.receive_json()
            analytics = ws.receive_json()
            assert resolution["event"] == "setResolution"
            assert resolution["data"]["totalComplaints"] == 4
            assert analytics["event"] == "analyticsUpdate"
            assert [a["category"] for a in analytics["data"]] == ["Hostel"]

            ws.send_json({"event": "hostelStats"})
            reply = ws.receive_json()
            assert reply["event"] == "sethostelStats"
            assert reply["data"]["resolvedComplaints"] == 1

            ws.send_json({"event": "academicStats"})
            denied = ws.receive_json()
            assert denied == {"event": "error", "data": {"message": "Unauthorized access"}}

            ws.send_json({"event": "disconnect"})
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 1000
