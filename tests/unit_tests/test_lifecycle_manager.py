"""Tests for the request lifecycle manager (state machine, atomicity, notifications)."""

import asyncio
from uuid import uuid4

import pytest

from exam_api.exceptions import Conflict
from exam_api.exceptions import InvalidTransition
from exam_api.exceptions import NotFound
from exam_api.exceptions import PersistenceFailure
from exam_api.exceptions import StorageFailure
from exam_api.exceptions import Unauthorized
from exam_api.exceptions import UnsupportedFileType
from exam_api.exceptions import ValidationError
from exam_api.portal.enums import EmailType
from exam_api.portal.enums import NotificationStatus
from exam_api.portal.enums import Priority
from exam_api.portal.enums import RequestStatus
from exam_api.portal.enums import RequestType
from exam_api.portal.enums import ResponseType
from exam_api.portal.enums import StorageArea
from exam_api.portal.models import FileUpload
from tests.consts import ARCHIVED_DEPARTMENT_ID
from tests.consts import CSE_DEPARTMENT_ID
from tests.consts import ECE_DEPARTMENT_ID
from tests.consts import OTHER_STUDENT_ID
from tests.consts import STUDENT_EMAIL
from tests.fixtures.portal_fixtures import seed_request

PDF = FileUpload(filename="hall_ticket.pdf", content=b"%PDF-1.7", content_type="application/pdf")
EXE = FileUpload(filename="setup.exe", content=b"MZ", content_type="application/octet-stream")


def responses_for(db, request_id):
    return [r for r in db.responses.values() if r.request_id == request_id]


def notifications_for(db, request_id):
    return [n for n in db.notifications.values() if n.request_id == request_id]


class TestSubmitRequest:
    """Tests for request submission."""

    @pytest.mark.asyncio
    async def test_student_submits_pending_request(self, lifecycle_manager, student, portal_db):
        """Scenario: a student files a high priority reschedule request with CSE."""
        request = await lifecycle_manager.submit_request(
            student,
            title="  Missed exam  ",
            description="Hospitalised on the exam date.",
            request_type=RequestType.RESCHEDULE,
            department_id=CSE_DEPARTMENT_ID,
            priority=Priority.HIGH,
        )

        assert request.status == RequestStatus.PENDING
        assert request.title == "Missed exam"
        assert request.student_id == student.id
        assert request.priority == Priority.HIGH
        assert request.attachments == []
        assert request.id in portal_db.requests

    @pytest.mark.asyncio
    async def test_priority_defaults_to_medium(self, lifecycle_manager, student):
        request = await lifecycle_manager.submit_request(
            student,
            title="Clarify syllabus",
            description="Is unit 5 included?",
            request_type=RequestType.CLARIFICATION,
            department_id=CSE_DEPARTMENT_ID,
        )

        assert request.priority == Priority.MEDIUM

    @pytest.mark.asyncio
    async def test_attachment_is_stored_in_request_area(self, lifecycle_manager, student, fake_store):
        request = await lifecycle_manager.submit_request(
            student,
            title="Wrong marks",
            description="Total is miscalculated.",
            request_type=RequestType.GRADE_DISPUTE,
            department_id=CSE_DEPARTMENT_ID,
            attachment=PDF,
        )

        assert len(request.attachments) == 1
        assert "/request-attachments/" in request.attachments[0]
        assert fake_store.uploads[0]["area"] == StorageArea.REQUEST_ATTACHMENTS
        assert fake_store.uploads[0]["blob_name"].startswith(f"{student.id}_")

    @pytest.mark.asyncio
    async def test_exe_attachment_rejected_before_any_write(self, lifecycle_manager, student, portal_db, fake_store):
        with pytest.raises(UnsupportedFileType):
            await lifecycle_manager.submit_request(
                student,
                title="Wrong marks",
                description="See attached.",
                request_type=RequestType.GRADE_DISPUTE,
                department_id=CSE_DEPARTMENT_ID,
                attachment=EXE,
            )

        assert portal_db.requests == {}
        assert fake_store.uploads == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title,description", [("", "text"), ("   ", "text"), ("Title", "  ")])
    async def test_blank_fields_rejected(self, lifecycle_manager, student, title, description):
        with pytest.raises(ValidationError):
            await lifecycle_manager.submit_request(
                student,
                title=title,
                description=description,
                request_type=RequestType.OTHER,
                department_id=CSE_DEPARTMENT_ID,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("department_id", [ARCHIVED_DEPARTMENT_ID, uuid4()])
    async def test_inactive_or_unknown_department_rejected(self, lifecycle_manager, student, department_id):
        with pytest.raises(ValidationError):
            await lifecycle_manager.submit_request(
                student,
                title="Missed exam",
                description="text",
                request_type=RequestType.RESCHEDULE,
                department_id=department_id,
            )

    @pytest.mark.asyncio
    async def test_admin_cannot_submit(self, lifecycle_manager, cse_admin):
        with pytest.raises(Unauthorized):
            await lifecycle_manager.submit_request(
                cse_admin,
                title="Missed exam",
                description="text",
                request_type=RequestType.RESCHEDULE,
                department_id=CSE_DEPARTMENT_ID,
            )

    @pytest.mark.asyncio
    async def test_storage_failure_writes_nothing(self, lifecycle_manager, student, portal_db, fake_store):
        fake_store.fail = True

        with pytest.raises(StorageFailure):
            await lifecycle_manager.submit_request(
                student,
                title="Missed exam",
                description="text",
                request_type=RequestType.RESCHEDULE,
                department_id=CSE_DEPARTMENT_ID,
                attachment=PDF,
            )

        assert portal_db.requests == {}


class TestApplyTransition:
    """Tests for resolve / escalate / terminate."""

    @pytest.mark.asyncio
    async def test_resolve_scenario(self, lifecycle_manager, cse_admin, pending_request, portal_db, fake_email_client):
        """Scenario: CSE admin resolves a pending CSE request and the student is emailed."""
        updated = await lifecycle_manager.resolve(pending_request.id, cse_admin, "Approved, new date: 14 March")

        assert updated.status == RequestStatus.RESOLVED
        assert updated.assigned_admin_id == cse_admin.id
        assert updated.resolution_notes == "Approved, new date: 14 March"
        assert updated.resolved_at is not None

        responses = responses_for(portal_db, pending_request.id)
        assert len(responses) == 1
        assert responses[0].response_type == ResponseType.RESOLUTION
        assert responses[0].responder_id == cse_admin.id

        notifications = notifications_for(portal_db, pending_request.id)
        assert len(notifications) == 1
        assert notifications[0].email_type == EmailType.REQUEST_RESOLVED
        assert notifications[0].status == NotificationStatus.SENT
        assert notifications[0].recipient_email == STUDENT_EMAIL

        assert fake_email_client.sent[0]["subject"] == 'Your Request "Missed exam" Has Been Resolved'
        assert "Approved, new date: 14 March" in fake_email_client.sent[0]["html_body"]

    @pytest.mark.asyncio
    async def test_escalate_keeps_request_open(self, lifecycle_manager, cse_admin, pending_request, portal_db):
        updated = await lifecycle_manager.escalate(pending_request.id, cse_admin, "Needs controller approval")

        assert updated.status == RequestStatus.ESCALATED
        assert updated.assigned_admin_id == cse_admin.id
        assert updated.resolved_at is None
        assert updated.resolution_notes is None
        assert responses_for(portal_db, pending_request.id)[0].response_type == ResponseType.ESCALATION
        assert notifications_for(portal_db, pending_request.id)[0].email_type == EmailType.REQUEST_ESCALATED

    @pytest.mark.asyncio
    async def test_terminate_sets_notes_and_resolved_at(self, lifecycle_manager, cse_admin, pending_request, portal_db):
        updated = await lifecycle_manager.terminate(pending_request.id, cse_admin, "Duplicate of an earlier request")

        assert updated.status == RequestStatus.TERMINATED
        assert updated.resolution_notes == "Duplicate of an earlier request"
        assert updated.resolved_at is not None
        assert responses_for(portal_db, pending_request.id)[0].response_type == ResponseType.TERMINATION
        notification = notifications_for(portal_db, pending_request.id)[0]
        assert notification.email_type == EmailType.REQUEST_TERMINATED
        assert notification.subject == 'Your Request "Missed exam" Has Been Closed'

    @pytest.mark.asyncio
    async def test_response_attachment_copied_to_notification(
        self, lifecycle_manager, cse_admin, pending_request, portal_db, fake_email_client
    ):
        await lifecycle_manager.resolve(pending_request.id, cse_admin, "See the revised timetable", PDF)

        response = responses_for(portal_db, pending_request.id)[0]
        notification = notifications_for(portal_db, pending_request.id)[0]
        assert len(response.attachments) == 1
        assert "/request-responses/response_" in response.attachments[0]
        assert notification.attachments == response.attachments
        assert fake_email_client.sent[0]["attachments"] == response.attachments

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [RequestStatus.RESOLVED, RequestStatus.ESCALATED, RequestStatus.TERMINATED]
    )
    @pytest.mark.parametrize(
        "target", [RequestStatus.RESOLVED, RequestStatus.ESCALATED, RequestStatus.TERMINATED]
    )
    async def test_admin_cannot_act_on_non_pending_request(self, lifecycle_manager, cse_admin, portal_db, status, target):
        request = seed_request(portal_db, status=status)

        with pytest.raises((InvalidTransition, Conflict)):
            await lifecycle_manager.apply_transition(request.id, cse_admin, target, "Again")

        assert portal_db.requests[request.id].status == status
        assert responses_for(portal_db, request.id) == []
        assert notifications_for(portal_db, request.id) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "target", [RequestStatus.RESOLVED, RequestStatus.ESCALATED, RequestStatus.TERMINATED]
    )
    async def test_admin_from_other_department_unauthorized(
        self, lifecycle_manager, ece_admin, pending_request, portal_db, target
    ):
        with pytest.raises(Unauthorized):
            await lifecycle_manager.apply_transition(pending_request.id, ece_admin, target, "Not mine")

        assert portal_db.requests[pending_request.id].status == RequestStatus.PENDING
        assert responses_for(portal_db, pending_request.id) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RequestStatus.PENDING, RequestStatus.ESCALATED])
    async def test_super_admin_can_never_escalate(self, lifecycle_manager, super_admin, portal_db, status):
        request = seed_request(portal_db, status=status)

        with pytest.raises(Unauthorized):
            await lifecycle_manager.escalate(request.id, super_admin, "Higher still")

        assert portal_db.requests[request.id].status == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [RequestStatus.RESOLVED, RequestStatus.TERMINATED])
    async def test_super_admin_closes_escalated_request(self, lifecycle_manager, super_admin, portal_db, target):
        request = seed_request(portal_db, department_id=ECE_DEPARTMENT_ID, status=RequestStatus.ESCALATED)

        updated = await lifecycle_manager.apply_transition(request.id, super_admin, target, "Decision of the controller")

        assert updated.status == target
        assert updated.assigned_admin_id == super_admin.id

    @pytest.mark.asyncio
    async def test_student_cannot_transition(self, lifecycle_manager, student, pending_request):
        with pytest.raises(Unauthorized):
            await lifecycle_manager.resolve(pending_request.id, student, "Resolving my own request")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_blank_response_text_rejected(self, lifecycle_manager, cse_admin, pending_request, portal_db, text):
        with pytest.raises(ValidationError):
            await lifecycle_manager.resolve(pending_request.id, cse_admin, text)

        assert portal_db.requests[pending_request.id].status == RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_is_not_a_transition_target(self, lifecycle_manager, super_admin, portal_db):
        request = seed_request(portal_db, status=RequestStatus.ESCALATED)

        with pytest.raises(ValidationError):
            await lifecycle_manager.apply_transition(request.id, super_admin, RequestStatus.PENDING, "De-escalate")

    @pytest.mark.asyncio
    async def test_exe_attachment_rejected_before_any_write(
        self, lifecycle_manager, cse_admin, pending_request, portal_db, fake_store
    ):
        with pytest.raises(UnsupportedFileType):
            await lifecycle_manager.resolve(pending_request.id, cse_admin, "See attached", EXE)

        assert fake_store.uploads == []
        assert responses_for(portal_db, pending_request.id) == []
        assert portal_db.requests[pending_request.id].status == RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_request_not_found(self, lifecycle_manager, cse_admin):
        with pytest.raises(NotFound):
            await lifecycle_manager.resolve(uuid4(), cse_admin, "Done")

    @pytest.mark.asyncio
    async def test_storage_failure_aborts_before_mutation(
        self, lifecycle_manager, cse_admin, pending_request, portal_db, fake_store
    ):
        fake_store.fail = True

        with pytest.raises(StorageFailure):
            await lifecycle_manager.resolve(pending_request.id, cse_admin, "See attached", PDF)

        assert portal_db.requests[pending_request.id].status == RequestStatus.PENDING
        assert responses_for(portal_db, pending_request.id) == []
        assert notifications_for(portal_db, pending_request.id) == []

    @pytest.mark.asyncio
    async def test_persistence_failure_rolls_back_status(self, lifecycle_manager, cse_admin, pending_request, portal_db):
        portal_db.failing_tables.add("request_responses")

        with pytest.raises(PersistenceFailure):
            await lifecycle_manager.resolve(pending_request.id, cse_admin, "Approved")

        assert portal_db.requests[pending_request.id].status == RequestStatus.PENDING
        assert portal_db.requests[pending_request.id].resolution_notes is None
        assert notifications_for(portal_db, pending_request.id) == []

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_reverse_transition(
        self, lifecycle_manager, cse_admin, pending_request, portal_db, fake_email_client
    ):
        fake_email_client.fail_all = True

        updated = await lifecycle_manager.resolve(pending_request.id, cse_admin, "Approved")

        assert updated.status == RequestStatus.RESOLVED
        assert portal_db.requests[pending_request.id].status == RequestStatus.RESOLVED
        notification = notifications_for(portal_db, pending_request.id)[0]
        assert notification.status == NotificationStatus.FAILED
        assert "Error: Brevo API error 400" in notification.content


class TestConcurrentTransitions:
    """Two admins acting on the same pending request."""

    @pytest.mark.asyncio
    async def test_exactly_one_concurrent_resolve_wins(self, lifecycle_manager, cse_admin, super_admin, pending_request, portal_db):
        results = await asyncio.gather(
            lifecycle_manager.resolve(pending_request.id, cse_admin, "Approved by department"),
            lifecycle_manager.resolve(pending_request.id, super_admin, "Approved by controller"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], Conflict)

        stored = portal_db.requests[pending_request.id]
        assert stored.status == RequestStatus.RESOLVED
        assert stored.resolution_notes == winners[0].resolution_notes
        assert len(responses_for(portal_db, pending_request.id)) == 1
        assert len(notifications_for(portal_db, pending_request.id)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_resolve_and_terminate(self, lifecycle_manager, cse_admin, pending_request, portal_db):
        results = await asyncio.gather(
            lifecycle_manager.resolve(pending_request.id, cse_admin, "Approved"),
            lifecycle_manager.terminate(pending_request.id, cse_admin, "Withdrawn"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, Conflict) for r in results) == 1
        responses = responses_for(portal_db, pending_request.id)
        assert len(responses) == 1
        stored = portal_db.requests[pending_request.id]
        expected_type = {
            RequestStatus.RESOLVED: ResponseType.RESOLUTION,
            RequestStatus.TERMINATED: ResponseType.TERMINATION,
        }[stored.status]
        assert responses[0].response_type == expected_type

    @pytest.mark.asyncio
    async def test_overlapping_transitions_email_each_student_once(
        self, lifecycle_manager, cse_admin, portal_db, fake_email_client
    ):
        first = seed_request(portal_db, title="A")
        second = seed_request(portal_db, title="B")

        await asyncio.gather(
            lifecycle_manager.resolve(first.id, cse_admin, "Approved"),
            lifecycle_manager.resolve(second.id, cse_admin, "Approved"),
        )

        assert sorted(m["subject"] for m in fake_email_client.sent) == [
            'Your Request "A" Has Been Resolved',
            'Your Request "B" Has Been Resolved',
        ]
        assert all(n.status == NotificationStatus.SENT for n in portal_db.notifications.values())


class TestReads:
    """Tests for visibility-scoped reads."""

    @pytest.mark.asyncio
    async def test_student_sees_only_own_requests(self, lifecycle_manager, student, portal_db):
        own = seed_request(portal_db)
        seed_request(portal_db, student_id=OTHER_STUDENT_ID, department_id=ECE_DEPARTMENT_ID)

        requests = await lifecycle_manager.list_visible_requests(student)

        assert [r.id for r in requests] == [own.id]
        assert requests[0].student_name == "Priya Raman"

    @pytest.mark.asyncio
    async def test_admin_sees_department_requests_newest_first(self, lifecycle_manager, cse_admin, portal_db):
        first = seed_request(portal_db)
        second = seed_request(portal_db, status=RequestStatus.RESOLVED)
        seed_request(portal_db, student_id=OTHER_STUDENT_ID, department_id=ECE_DEPARTMENT_ID)

        requests = await lifecycle_manager.list_visible_requests(cse_admin)
        pending = await lifecycle_manager.list_visible_requests(cse_admin, status=RequestStatus.PENDING)

        assert [r.id for r in requests] == [second.id, first.id]
        assert [r.id for r in pending] == [first.id]

    @pytest.mark.asyncio
    async def test_super_admin_inbox_is_escalations_only(self, lifecycle_manager, super_admin, portal_db):
        seed_request(portal_db)
        escalated_cse = seed_request(portal_db, status=RequestStatus.ESCALATED)
        escalated_ece = seed_request(
            portal_db, student_id=OTHER_STUDENT_ID, department_id=ECE_DEPARTMENT_ID, status=RequestStatus.ESCALATED
        )

        requests = await lifecycle_manager.list_visible_requests(super_admin)
        resolved_tab = await lifecycle_manager.list_visible_requests(super_admin, status=RequestStatus.RESOLVED)

        assert {r.id for r in requests} == {escalated_cse.id, escalated_ece.id}
        assert resolved_tab == []

    @pytest.mark.asyncio
    async def test_search_matches_request_id_substring(self, lifecycle_manager, cse_admin, portal_db):
        target = seed_request(portal_db)
        seed_request(portal_db)

        requests = await lifecycle_manager.list_visible_requests(cse_admin, search=str(target.id)[:8].upper())

        assert [r.id for r in requests] == [target.id]

    @pytest.mark.asyncio
    async def test_get_request_hidden_from_other_student(self, lifecycle_manager, other_student, pending_request):
        with pytest.raises(NotFound):
            await lifecycle_manager.get_request(other_student, pending_request.id)

    @pytest.mark.asyncio
    async def test_response_thread_oldest_first(self, lifecycle_manager, cse_admin, super_admin, student, pending_request):
        await lifecycle_manager.escalate(pending_request.id, cse_admin, "Forwarded to the controller")
        await lifecycle_manager.resolve(pending_request.id, super_admin, "Approved")

        thread = await lifecycle_manager.list_responses(student, pending_request.id)

        assert [r.response_type for r in thread] == [ResponseType.ESCALATION, ResponseType.RESOLUTION]
