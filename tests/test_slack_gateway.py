import json
import time
import pytest
from decimal import Decimal
from unittest.mock import MagicMock
from urllib.parse import quote

from sqlalchemy import event, text

from lams.core.config import settings
from lams.core.exceptions import AuthenticationError
from lams.models.employee import EmployeeRole
from lams.models.leave_request import LeaveRequest, LeaveStatus
from lams.services.leave_service import LeaveService
from lams.services.slack_gateway import (
    INVALID_PAYLOAD_TEXT, NOT_LINKED_TEXT, SlackDecisionGateway, compute_signature, parse_action_context,
)

SECRET = "test-signing-secret"
NOW = 1_900_000_000
RESPONSE_URL = "https://hooks.slack.com/actions/T1/123/abc"


def _body(slack_user_id, request_id, decision="approve", stage="manager", payload_type="block_actions"):
    payload = {
        "type": payload_type,
        "user": {"id": slack_user_id},
        "response_url": RESPONSE_URL,
        "actions": [{"value": json.dumps({"requestId": request_id, "decision": decision, "stage": stage})}],
    }
    return "payload=" + quote(json.dumps(payload))


def _signed(body, ts=NOW, secret=SECRET):
    return str(ts), compute_signature(secret, str(ts), body)


def _post_interaction(client, body):
    ts = str(int(time.time()))
    return client.post(
        "/api/slack/interactions",
        content=body,
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Slack-Request-Timestamp": ts,
            "X-Slack-Signature": compute_signature(settings.slack.signing_secret, ts, body),
        },
    )


@pytest.fixture
def gateway(db_session, leave_service):
    return SlackDecisionGateway(db_session, leave_service, SECRET, clock=lambda: NOW)


class TestVerification:
    @pytest.mark.parametrize("skew", [301, -301])
    def test_stale_timestamp_rejected_before_any_lookup(self, skew):
        db = MagicMock()
        service = MagicMock()
        gateway = SlackDecisionGateway(db, service, SECRET, clock=lambda: NOW)
        body = _body("U_MGR", "req1")
        ts, signature = _signed(body, ts=NOW - skew)

        with pytest.raises(AuthenticationError, match="too old"):
            gateway.handle(body, ts, signature)
        assert db.mock_calls == []
        assert service.mock_calls == []

    def test_timestamp_at_window_edge_accepted(self):
        gateway = SlackDecisionGateway(MagicMock(), MagicMock(), SECRET, clock=lambda: NOW)
        body = "payload=%7B%7D"
        ts, signature = _signed(body, ts=NOW - 300)
        gateway.verify_request(ts, signature, body)

    def test_bad_signature(self, gateway):
        body = _body("U_MGR", "req1")
        ts, _ = _signed(body)
        with pytest.raises(AuthenticationError, match="Invalid signature"):
            gateway.handle(body, ts, "v0=deadbeef")

    def test_signature_over_different_body(self, gateway):
        ts, signature = _signed(_body("U_MGR", "req1"))
        with pytest.raises(AuthenticationError):
            gateway.handle(_body("U_MGR", "req2"), ts, signature)

    def test_missing_timestamp(self, gateway):
        with pytest.raises(AuthenticationError):
            gateway.handle("payload=%7B%7D", None, "v0=abc")

    def test_missing_secret_rejected(self, db_session, leave_service):
        gateway = SlackDecisionGateway(db_session, leave_service, None, clock=lambda: NOW)
        with pytest.raises(AuthenticationError, match="not configured"):
            gateway.verify_request(str(NOW), "v0=abc", "payload=%7B%7D")

    def test_missing_secret_allowed_when_unsigned_enabled(self, db_session, leave_service):
        gateway = SlackDecisionGateway(db_session, leave_service, None, allow_unsigned=True, clock=lambda: NOW)
        gateway.verify_request(str(NOW), None, "payload=%7B%7D")


class TestActionParsing:
    def test_valid(self):
        context = parse_action_context('{"requestId": "r1", "decision": "reject", "stage": "hr"}')
        assert context.request_id == "r1"
        assert context.approved is False

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        '{"decision": "approve", "stage": "manager"}',
        '{"requestId": "r1", "decision": "maybe", "stage": "manager"}',
        '{"requestId": "r1", "decision": "approve", "stage": "ceo"}',
    ])
    def test_invalid(self, raw):
        with pytest.raises(ValueError):
            parse_action_context(raw)


class TestHandle:
    def test_manager_approves_from_slack(self, db_session, gateway, submit_leave):
        request_id = submit_leave()
        body = _body("U_MGR", request_id)
        result = gateway.handle(body, *_signed(body))

        assert result.applied is True
        assert result.response_url == RESPONSE_URL
        assert "Forwarded to HR" in result.text
        leave = db_session.get(LeaveRequest, request_id)
        assert leave.status == LeaveStatus.PENDING_HR
        assert leave.manager_comment == "Approved via Slack"

    def test_hr_approves_from_slack(self, db_session, gateway, leave_service, submit_leave, manager, hr, employee):
        request_id = submit_leave()
        leave_service.manager_decision(request_id, True, "", manager)
        body = _body("U_HR", request_id, stage="hr")
        result = gateway.handle(body, *_signed(body))

        assert result.applied is True
        assert "Approved by HR" in result.text
        db_session.refresh(employee)
        assert employee.comp_off_balance == Decimal("0")
        assert employee.annual_leave_balance == Decimal("8")

    def test_reject_from_slack(self, db_session, gateway, submit_leave):
        request_id = submit_leave()
        body = _body("U_MGR", request_id, decision="reject")
        result = gateway.handle(body, *_signed(body))
        assert "Rejected by Manager" in result.text
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.REJECTED

    def test_unlinked_slack_user(self, db_session, gateway, submit_leave):
        request_id = submit_leave()
        body = _body("U_NOBODY", request_id)
        result = gateway.handle(body, *_signed(body))
        assert result.text == NOT_LINKED_TEXT
        assert result.applied is False
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_MANAGER

    def test_not_the_assigned_manager(self, db_session, gateway, submit_leave, make_employee):
        make_employee("Other Manager", role=EmployeeRole.MANAGER, slack_member_id="U_OTHER")
        request_id = submit_leave()
        body = _body("U_OTHER", request_id)
        result = gateway.handle(body, *_signed(body))
        assert result.text.startswith("⚠️")
        assert "not the assigned manager" in result.text
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_MANAGER

    def test_stale_button_after_decision(self, db_session, gateway, leave_service, submit_leave, manager):
        request_id = submit_leave()
        leave_service.manager_decision(request_id, False, "", manager)
        body = _body("U_MGR", request_id)
        result = gateway.handle(body, *_signed(body))
        assert "already been processed" in result.text
        assert result.applied is False
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.REJECTED

    def test_manager_button_pressed_by_hr(self, gateway, submit_leave, hr):
        request_id = submit_leave()
        body = _body("U_HR", request_id, stage="manager")
        result = gateway.handle(body, *_signed(body))
        assert result.applied is False

    def test_insufficient_balance_reported_in_message(self, db_session, gateway, leave_service, submit_leave,
                                                      manager, hr, employee):
        request_id = submit_leave()
        leave_service.manager_decision(request_id, True, "", manager)
        employee.annual_leave_balance = Decimal("0")
        db_session.commit()

        body = _body("U_HR", request_id, stage="hr")
        result = gateway.handle(body, *_signed(body))
        assert result.applied is False
        assert result.text.startswith("⚠️")
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_HR

    def test_unknown_request(self, gateway, manager):
        body = _body("U_MGR", "does-not-exist")
        result = gateway.handle(body, *_signed(body))
        assert "not found" in result.text

    def test_other_payload_types_ignored(self, gateway):
        body = _body("U_MGR", "req1", payload_type="view_submission")
        result = gateway.handle(body, *_signed(body))
        assert result.text is None

    def test_malformed_action_value(self, gateway):
        payload = {"type": "block_actions", "user": {"id": "U_MGR"}, "response_url": RESPONSE_URL,
                   "actions": [{"value": "garbage"}]}
        body = "payload=" + quote(json.dumps(payload))
        result = gateway.handle(body, *_signed(body))
        assert "invalid" in result.text
        assert result.applied is False

    @pytest.mark.parametrize("actions, user", [
        (["approve"], {"id": "U_MGR"}),
        ([None], {"id": "U_MGR"}),
        ("approve", {"id": "U_MGR"}),
        ([{"value": json.dumps({"requestId": "r1", "decision": "approve", "stage": "manager"})}], "U_MGR"),
    ])
    def test_unexpected_payload_shapes(self, gateway, manager, actions, user):
        payload = {"type": "block_actions", "user": user, "response_url": RESPONSE_URL, "actions": actions}
        body = "payload=" + quote(json.dumps(payload))
        result = gateway.handle(body, *_signed(body))
        assert result.applied is False
        if result.text is not None:
            assert result.text == INVALID_PAYLOAD_TEXT

    def test_follow_up_messages_are_deferred(self, db_session, submit_leave, hr, notifier):
        request_id = submit_leave()
        scheduled = []
        service = LeaveService(db_session, notifier=notifier, defer=lambda fn, *args: scheduled.append((fn, args)))
        gateway = SlackDecisionGateway(db_session, service, SECRET, clock=lambda: NOW)

        body = _body("U_MGR", request_id)
        result = gateway.handle(body, *_signed(body))
        assert result.applied is True
        assert notifier.sent_to("U_HR") == []

        for fn, args in scheduled:
            fn(*args)
        assert len(notifier.sent_to("U_HR")) == 1


class TestInteractionsEndpoint:
    def test_decision_acknowledged_and_message_replaced(self, client, db_session, submit_leave, notifier):
        request_id = submit_leave()
        body = _body("U_MGR", request_id)
        ts = str(int(time.time()))
        response = client.post(
            "/api/slack/interactions",
            content=body,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "X-Slack-Request-Timestamp": ts,
                "X-Slack-Signature": compute_signature(settings.slack.signing_secret, ts, body),
            },
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert notifier.replaced[0]["response_url"] == RESPONSE_URL
        assert "Forwarded to HR" in notifier.replaced[0]["text"]
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_HR

    def test_logical_refusal_is_still_200(self, client, submit_leave, notifier):
        request_id = submit_leave()
        body = _body("U_NOBODY", request_id)
        ts = str(int(time.time()))
        response = client.post(
            "/api/slack/interactions",
            content=body,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "X-Slack-Request-Timestamp": ts,
                "X-Slack-Signature": compute_signature(settings.slack.signing_secret, ts, body),
            },
        )
        assert response.status_code == 200
        assert notifier.replaced[0]["text"] == NOT_LINKED_TEXT

    def test_bad_signature_is_401(self, client, submit_leave, notifier):
        body = _body("U_MGR", submit_leave())
        response = client.post(
            "/api/slack/interactions",
            content=body,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "X-Slack-Request-Timestamp": str(int(time.time())),
                "X-Slack-Signature": "v0=bad",
            },
        )
        assert response.status_code == 401
        assert response.json()["errors"][0]["code"] == "AUTH_FAILED"
        assert notifier.replaced == []

    def test_follow_up_messages_sent_after_acknowledgement(self, client, submit_leave, hr, notifier):
        request_id = submit_leave()
        response = _post_interaction(client, _body("U_MGR", request_id))
        assert response.status_code == 200
        assert len(notifier.sent_to("U_HR")) == 1
        assert len(notifier.sent_to("U_EMP")) == 1

    def test_persistent_version_conflict_is_still_200(self, client, db_session, submit_leave, notifier):
        request_id = submit_leave()

        def bump_version(session, flush_context, instances):
            # Another writer gets in before every flush
            session.connection().execute(text("UPDATE leave_requests SET version = version + 1"))

        event.listen(db_session, "before_flush", bump_version)
        try:
            response = _post_interaction(client, _body("U_MGR", request_id))
        finally:
            event.remove(db_session, "before_flush", bump_version)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert "changed concurrently" in notifier.replaced[0]["text"]
        db_session.expire_all()
        assert db_session.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_MANAGER

    def test_unexpected_action_shape_is_200(self, client, manager, notifier):
        payload = {"type": "block_actions", "user": {"id": "U_MGR"}, "response_url": RESPONSE_URL,
                   "actions": ["approve"]}
        response = _post_interaction(client, "payload=" + quote(json.dumps(payload)))
        assert response.status_code == 200
        assert notifier.replaced[0]["text"] == INVALID_PAYLOAD_TEXT
