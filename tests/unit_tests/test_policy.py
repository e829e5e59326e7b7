"""Tests for the access/visibility policy."""

import pytest

from exam_api.exceptions import Unauthorized
from exam_api.portal.enums import RequestStatus
from exam_api.portal.lifecycle import policy
from tests.consts import CSE_DEPARTMENT_ID
from tests.consts import ECE_DEPARTMENT_ID
from tests.consts import OTHER_STUDENT_ID
from tests.fixtures.portal_fixtures import seed_request


class TestAuthorizeTransition:
    """Authorization table for resolve / escalate / terminate."""

    @pytest.mark.parametrize(
        "target", [RequestStatus.RESOLVED, RequestStatus.ESCALATED, RequestStatus.TERMINATED]
    )
    def test_department_admin_allowed(self, cse_admin, pending_request, target):
        policy.authorize_transition(cse_admin, pending_request, target)

    @pytest.mark.parametrize(
        "target", [RequestStatus.RESOLVED, RequestStatus.ESCALATED, RequestStatus.TERMINATED]
    )
    def test_other_department_admin_rejected(self, ece_admin, pending_request, target):
        with pytest.raises(Unauthorized):
            policy.authorize_transition(ece_admin, pending_request, target)

    def test_super_admin_cannot_escalate(self, super_admin, pending_request):
        with pytest.raises(Unauthorized, match="cannot escalate"):
            policy.authorize_transition(super_admin, pending_request, RequestStatus.ESCALATED)

    @pytest.mark.parametrize("target", [RequestStatus.RESOLVED, RequestStatus.TERMINATED])
    def test_super_admin_ignores_department(self, super_admin, portal_db, target):
        request = seed_request(portal_db, department_id=ECE_DEPARTMENT_ID)

        policy.authorize_transition(super_admin, request, target)

    def test_student_rejected(self, student, pending_request):
        with pytest.raises(Unauthorized):
            policy.authorize_transition(student, pending_request, RequestStatus.RESOLVED)

    def test_admin_without_department_rejected(self, cse_admin, pending_request):
        detached = cse_admin.model_copy(update={"department_id": None})

        assert policy.can_mutate(detached, pending_request, RequestStatus.RESOLVED) is False


class TestAllowedSourceStatuses:
    """Which statuses a transition may leave from."""

    def test_admin_acts_on_pending_only(self, cse_admin):
        assert policy.allowed_source_statuses(cse_admin, RequestStatus.RESOLVED) == {RequestStatus.PENDING}

    def test_super_admin_acts_on_pending_and_escalated(self, super_admin):
        assert policy.allowed_source_statuses(super_admin, RequestStatus.TERMINATED) == {
            RequestStatus.PENDING,
            RequestStatus.ESCALATED,
        }

    def test_super_admin_has_no_escalation_source(self, super_admin):
        assert policy.allowed_source_statuses(super_admin, RequestStatus.ESCALATED) == frozenset()

    def test_student_has_no_source(self, student):
        assert policy.allowed_source_statuses(student, RequestStatus.RESOLVED) == frozenset()


class TestVisibility:
    """Who sees which requests."""

    def test_student_filters_by_owner(self, student):
        filters = policy.visible_request_filters(student, RequestStatus.PENDING)

        assert filters.student_id == student.id
        assert filters.department_id is None
        assert filters.status == RequestStatus.PENDING

    def test_admin_filters_by_department(self, cse_admin):
        filters = policy.visible_request_filters(cse_admin)

        assert filters.department_id == CSE_DEPARTMENT_ID
        assert filters.student_id is None
        assert filters.status is None

    def test_super_admin_sees_escalations(self, super_admin):
        assert policy.visible_request_filters(super_admin).status == RequestStatus.ESCALATED
        assert policy.visible_request_filters(super_admin, RequestStatus.ESCALATED).status == RequestStatus.ESCALATED

    def test_super_admin_other_tab_is_empty(self, super_admin):
        assert policy.visible_request_filters(super_admin, RequestStatus.PENDING) is None

    def test_can_view(self, student, other_student, cse_admin, ece_admin, super_admin, portal_db):
        pending = seed_request(portal_db)
        escalated = seed_request(portal_db, student_id=OTHER_STUDENT_ID, status=RequestStatus.ESCALATED)

        assert policy.can_view(student, pending)
        assert not policy.can_view(other_student, pending)
        assert policy.can_view(cse_admin, pending)
        assert not policy.can_view(ece_admin, pending)
        assert not policy.can_view(super_admin, pending)
        assert policy.can_view(super_admin, escalated)

    def test_super_admin_keeps_sight_of_closed_request(self, super_admin, portal_db):
        request = seed_request(portal_db, status=RequestStatus.RESOLVED)
        closed = request.model_copy(update={"assigned_admin_id": super_admin.id})

        assert policy.can_view(super_admin, closed)
