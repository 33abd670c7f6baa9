"""
Integration tests for the complaint API endpoints.

Tests:
- Authentication and category validation on every route
- Role-scoped listing and cursor hand-off over HTTP
- Single complaint lookup
- Status transitions (resolved/viewed) and resolved_at stamping
- Remarks with attachment uploads
- Cross-scope mutations are refused without changing anything
- Store timeouts answer 503 with Retry-After
"""

import asyncio
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from crud.complaint_crud import ComplaintCRUD

from db.models import AcademicComplaint, HostelComplaint
from tests.factories import PDF_BYTES, PNG_BYTES, ComplaintFactory, persist

API = "/api/v1"


async def reload(session_factory, model, complaint_id):
    async with session_factory() as session:
        return await session.get(model, complaint_id)


# ============================================================================
# Authentication and validation
# ============================================================================

class TestRequestGuards:
    @pytest.mark.asyncio
    async def test_missing_cookies(self, client):
        response = await client.get(f"{API}/complaints/hostel")
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "status": "error",
            "message": "Not authorized, no token",
        }

    @pytest.mark.asyncio
    async def test_unknown_category(self, login_as):
        client = login_as("admin")
        response = await client.get(f"{API}/complaints/library")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid Category"

    @pytest.mark.asyncio
    async def test_role_without_category_access(self, login_as):
        client = login_as("medical")
        response = await client.get(f"{API}/complaints/hostel")
        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized access"

    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, login_as):
        client = login_as("admin")
        response = await client.get(
            f"{API}/complaints/hostel",
            params={"filters": '{"startDate": "2024-05-02", "endDate": "2024-05-01"}'},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "startDate must be before endDate"

    @pytest.mark.asyncio
    async def test_malformed_cursor_rejected(self, login_as):
        client = login_as("admin")
        response = await client.get(
            f"{API}/complaints/hostel", params={"lastSeenId": "garbage"}
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid lastSeenId"


# ============================================================================
# Listing
# ============================================================================

class TestListComplaints:
    @pytest.mark.asyncio
    async def test_cursor_hand_off(self, login_as, db_session):
        await persist(
            db_session,
            *[ComplaintFactory.create(HostelComplaint, minutes=i) for i in range(3)],
        )
        client = login_as("cow")

        first = await client.get(f"{API}/complaints/hostel", params={"limit": 2})
        body = first.json()
        assert first.status_code == 200
        assert len(body["complaints"]) == 2
        assert body["nextLastSeenId"] == body["complaints"][-1]["id"]

        second = await client.get(
            f"{API}/complaints/hostel",
            params={"limit": 2, "lastSeenId": body["nextLastSeenId"]},
        )
        body2 = second.json()
        assert len(body2["complaints"]) == 1
        assert body2["nextLastSeenId"] is None

        seen = [c["id"] for c in body["complaints"] + body2["complaints"]]
        assert len(set(seen)) == 3

    @pytest.mark.asyncio
    async def test_warden_sees_only_own_hostel_despite_override(self, login_as, db_session):
        await persist(
            db_session,
            ComplaintFactory.create(HostelComplaint, hostel_number="H1"),
            ComplaintFactory.create(HostelComplaint, hostel_number="H2"),
            ComplaintFactory.create(HostelComplaint, hostel_number="H2"),
        )
        client = login_as("H1")

        response = await client.get(
            f"{API}/complaints/hostel", params={"filters": '{"hostelNumber": "H2"}'}
        )

        complaints = response.json()["complaints"]
        assert response.status_code == 200
        assert [c["hostelNumber"] for c in complaints] == ["H1"]

    @pytest.mark.asyncio
    async def test_projection(self, login_as, db_session):
        (complaint,) = await persist(
            db_session,
            ComplaintFactory.create(HostelComplaint, attachments=["uploads/photo.png"]),
        )
        client = login_as("admin")

        response = await client.get(f"{API}/complaints/hostel")

        item = response.json()["complaints"][0]
        assert item["id"] == str(complaint.id)
        assert item["category"] == "Hostel"
        assert item["scholarNumber"] == complaint.scholar_number
        assert item["attachments"] == [{"url": "http://test/uploads/photo.png"}]
        assert item["createdAt"].endswith("Z")


class TestGetComplaint:
    @pytest.mark.asyncio
    async def test_get_visible_complaint(self, login_as, db_session):
        (complaint,) = await persist(
            db_session, ComplaintFactory.create(HostelComplaint, hostel_number="H1")
        )
        client = login_as("H1")

        response = await client.get(f"{API}/complaints/hostel/{complaint.id}")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["complaint"]["id"] == str(complaint.id)

    @pytest.mark.asyncio
    async def test_get_out_of_scope_complaint(self, login_as, db_session):
        (complaint,) = await persist(
            db_session, ComplaintFactory.create(HostelComplaint, hostel_number="H2")
        )
        client = login_as("H1")

        response = await client.get(f"{API}/complaints/hostel/{complaint.id}")

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_unknown_complaint(self, login_as):
        client = login_as("admin")
        response = await client.get(f"{API}/complaints/hostel/{uuid4()}")
        assert response.status_code == 404
        assert response.json()["message"] == "Complaint not found"


# ============================================================================
# Status updates
# ============================================================================

class TestStatusUpdate:
    @pytest.mark.asyncio
    async def test_resolve_sets_status_and_resolved_at(self, login_as, db_session, session_factory):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("H1")

        response = await client.put(
            f"{API}/status/hostel", json={"id": str(complaint.id), "status": "Resolved"}
        )

        assert response.status_code == 200
        assert response.json()["complaint"]["status"] == "Resolved"
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.status == "Resolved"
        assert stored.resolved_at is not None

    @pytest.mark.asyncio
    async def test_resolving_twice_refreshes_resolved_at(self, login_as, db_session, session_factory):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("admin")
        payload = {"id": str(complaint.id), "status": "resolved"}

        await client.put(f"{API}/status/hostel", json=payload)
        first = (await reload(session_factory, HostelComplaint, complaint.id)).resolved_at
        response = await client.put(f"{API}/status/hostel", json=payload)
        second = (await reload(session_factory, HostelComplaint, complaint.id)).resolved_at

        assert response.status_code == 200
        assert second >= first

    @pytest.mark.asyncio
    async def test_viewed_only_changes_read_status_on_hostel(self, login_as, db_session, session_factory):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("admin")

        response = await client.put(
            f"{API}/status/hostel", json={"id": str(complaint.id), "status": "viewed"}
        )

        assert response.status_code == 200
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.read_status == "Viewed"
        assert stored.status == "Pending"
        assert stored.resolved_at is None

    @pytest.mark.asyncio
    async def test_academic_viewed_stamps_resolved_at(self, login_as, db_session, session_factory):
        (complaint,) = await persist(db_session, ComplaintFactory.create(AcademicComplaint))
        client = login_as("academic")

        await client.put(
            f"{API}/status/academic", json={"id": str(complaint.id), "status": "viewed"}
        )
        viewed = await reload(session_factory, AcademicComplaint, complaint.id)
        assert viewed.read_status == "Viewed"
        assert viewed.resolved_at is not None

    @pytest.mark.asyncio
    async def test_academic_resolved_leaves_resolved_at(self, login_as, db_session, session_factory):
        (complaint,) = await persist(db_session, ComplaintFactory.create(AcademicComplaint))
        client = login_as("academic")

        await client.put(
            f"{API}/status/academic", json={"id": str(complaint.id), "status": "resolved"}
        )
        stored = await reload(session_factory, AcademicComplaint, complaint.id)
        assert stored.status == "Resolved"
        assert stored.resolved_at is None

    @pytest.mark.asyncio
    async def test_invalid_status_value(self, login_as, db_session):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("admin")

        response = await client.put(
            f"{API}/status/hostel", json={"id": str(complaint.id), "status": "closed"}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_body_fields(self, login_as):
        client = login_as("admin")
        response = await client.put(f"{API}/status/hostel", json={"status": "resolved"})
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_cross_scope_update_refused(self, login_as, db_session, session_factory):
        (complaint,) = await persist(
            db_session, ComplaintFactory.create(HostelComplaint, hostel_number="H2")
        )
        client = login_as("H1")

        response = await client.put(
            f"{API}/status/hostel", json={"id": str(complaint.id), "status": "resolved"}
        )

        assert response.status_code == 403
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.status == "Pending"
        assert stored.resolved_at is None

    @pytest.mark.asyncio
    async def test_unknown_complaint(self, login_as):
        client = login_as("admin")
        response = await client.put(
            f"{API}/status/hostel", json={"id": str(uuid4()), "status": "resolved"}
        )
        assert response.status_code == 404


# ============================================================================
# Remarks
# ============================================================================

class TestRemarks:
    @pytest.fixture(autouse=True)
    def upload_dir(self, tmp_path, monkeypatch):
        directory = tmp_path / "uploads"
        monkeypatch.setattr(settings.file_upload, "upload_dir", str(directory))
        return directory

    @pytest.mark.asyncio
    async def test_remarks_with_attachment(self, login_as, db_session, session_factory, upload_dir):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("H1")

        response = await client.put(
            f"{API}/remarks/hostel",
            data={"id": str(complaint.id), "AdminRemarks": "Plumber scheduled"},
            files=[("attachments", ("report.pdf", PDF_BYTES, "application/pdf"))],
        )

        assert response.status_code == 200
        body = response.json()["complaint"]
        assert body["adminRemarks"] == "Plumber scheduled"
        assert len(body["adminAttachments"]) == 1
        assert body["adminAttachments"][0]["url"].startswith("http://test/uploads/")

        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.admin_remarks == "Plumber scheduled"
        assert len(list(upload_dir.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_remarks_without_files_keep_existing_attachments(
        self, login_as, db_session, session_factory
    ):
        (complaint,) = await persist(
            db_session,
            ComplaintFactory.create(HostelComplaint, admin_attachments=["uploads/old.png"]),
        )
        client = login_as("admin")

        response = await client.put(
            f"{API}/remarks/hostel",
            data={"id": str(complaint.id), "AdminRemarks": "Checked again"},
        )

        assert response.status_code == 200
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.admin_attachments == ["uploads/old.png"]
        assert stored.admin_remarks == "Checked again"

    @pytest.mark.asyncio
    async def test_invalid_file_type_writes_nothing(
        self, login_as, db_session, session_factory, upload_dir
    ):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))
        client = login_as("admin")

        response = await client.put(
            f"{API}/remarks/hostel",
            data={"id": str(complaint.id), "AdminRemarks": "x"},
            files=[("attachments", ("tool.exe", b"MZ", "application/octet-stream"))],
        )

        assert response.status_code == 400
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.admin_remarks is None
        assert not upload_dir.exists()

    @pytest.mark.asyncio
    async def test_cross_scope_remarks_write_nothing(
        self, login_as, db_session, session_factory, upload_dir
    ):
        (complaint,) = await persist(
            db_session, ComplaintFactory.create(HostelComplaint, hostel_number="H3")
        )
        client = login_as("H1")

        response = await client.put(
            f"{API}/remarks/hostel",
            data={"id": str(complaint.id), "AdminRemarks": "Not mine"},
            files=[("attachments", ("a.png", PNG_BYTES, "image/png"))],
        )

        assert response.status_code == 403
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.admin_remarks is None
        assert not upload_dir.exists()

    @pytest.mark.asyncio
    async def test_missing_id(self, login_as):
        client = login_as("admin")
        response = await client.put(f"{API}/remarks/hostel", data={"AdminRemarks": "x"})
        assert response.status_code == 400
        assert response.json()["message"] == "Complaint ID is required"

    @pytest.mark.asyncio
    async def test_failed_save_discards_written_files(
        self, login_as, db_session, session_factory, upload_dir, monkeypatch
    ):
        (complaint,) = await persist(db_session, ComplaintFactory.create(HostelComplaint))

        async def failing_save(db, complaint):
            raise OperationalError("UPDATE", {}, Exception("connection lost"))

        monkeypatch.setattr(ComplaintCRUD, "save", staticmethod(failing_save))
        client = login_as("admin")

        response = await client.put(
            f"{API}/remarks/hostel",
            data={"id": str(complaint.id), "AdminRemarks": "Lost"},
            files=[("attachments", ("report.pdf", PDF_BYTES, "application/pdf"))],
        )

        assert response.status_code == 500
        assert list(upload_dir.iterdir()) == []
        stored = await reload(session_factory, HostelComplaint, complaint.id)
        assert stored.admin_remarks is None


# ============================================================================
# Store time bounds
# ============================================================================

class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_page_answers_503(self, login_as, db_session, monkeypatch):
        await persist(db_session, ComplaintFactory.create(HostelComplaint))

        async def slow_execute(self, *args, **kwargs):
            await asyncio.sleep(5)

        monkeypatch.setattr(settings.query, "page_timeout", 0.05)
        monkeypatch.setattr(AsyncSession, "execute", slow_execute)
        client = login_as("admin")

        response = await client.get(f"{API}/complaints/hostel")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert response.json() == {
            "success": False,
            "status": "error",
            "message": "Database operation timed out. Please try with more specific filters.",
        }

    @pytest.mark.asyncio
    async def test_client_errors_have_no_retry_header(self, login_as):
        client = login_as("admin")
        response = await client.get(f"{API}/complaints/library")
        assert response.status_code == 400
        assert "Retry-After" not in response.headers
