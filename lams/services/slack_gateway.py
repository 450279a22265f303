"""
Slack Decision Gateway

Handles Approve / Reject button clicks from Slack DMs. The request carries no
application session, so everything is derived again on the server:

1. the timestamp must be inside the replay window (checked before anything
   else touches the database),
2. the ``v0`` HMAC signature must match the signing secret,
3. the clicking Slack user must be linked to an employee,
4. the leave request must still be in the stage the button was rendered for
   and the employee must be allowed to decide it.

Only then is the decision handed to ``LeaveService``, which checks the same
guards again inside its transaction. Logical failures never become HTTP
errors: the outcome text replaces the original Slack message instead.
"""
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import parse_qs

from sqlalchemy.orm import Session

from lams.core.exceptions import AppException, AuthenticationError, InvalidStateError
from lams.models.employee import Employee
from lams.models.leave_request import LeaveRequest
from lams.services import slack_messages
from lams.services.leave_service import LeaveService
from lams.services.leave_workflow import Decision, Stage, check_hr_guard, check_manager_guard

logger = logging.getLogger(__name__)

SLACK_SIGNATURE_HEADER = "X-Slack-Signature"
SLACK_TIMESTAMP_HEADER = "X-Slack-Request-Timestamp"
SIGNATURE_VERSION = "v0"

NOT_LINKED_TEXT = (
    "⚠️  Your Slack ID is not linked to any LAMS account. "
    "Ask HR to set your Slack Member ID in the Admin Panel."
)
INVALID_PAYLOAD_TEXT = "⚠️  This action payload is invalid. Please use the LAMS approvals page."


@dataclass
class GatewayResult:
    """Outcome of one interaction; ``text`` replaces the message at ``response_url``."""
    text: Optional[str] = None
    response_url: Optional[str] = None
    applied: bool = False


@dataclass(frozen=True)
class ActionContext:
    request_id: str
    decision: str
    stage: str

    @property
    def approved(self) -> bool:
        return self.decision == Decision.APPROVE


def compute_signature(signing_secret: str, timestamp: str, body: str) -> str:
    base_string = f"{SIGNATURE_VERSION}:{timestamp}:{body}"
    digest = hmac.new(signing_secret.encode(), base_string.encode(), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def parse_action_context(raw_value: str) -> ActionContext:
    """Parse a button value ``{"requestId", "decision", "stage"}``; ValueError when malformed."""
    try:
        data = json.loads(raw_value)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError("Action value is not valid JSON") from e
    if not isinstance(data, dict):
        raise ValueError("Action value must be an object")

    request_id = data.get("requestId")
    decision = data.get("decision")
    stage = data.get("stage")
    if not request_id or not isinstance(request_id, str):
        raise ValueError("Missing requestId")
    if decision not in (Decision.APPROVE, Decision.REJECT):
        raise ValueError(f"Unknown decision: {decision!r}")
    if stage not in (Stage.MANAGER, Stage.HR):
        raise ValueError(f"Unknown stage: {stage!r}")
    return ActionContext(request_id=request_id, decision=decision, stage=stage)


class SlackDecisionGateway:
    def __init__(
        self,
        db: Session,
        leave_service: LeaveService,
        signing_secret: Optional[str],
        allow_unsigned: bool = False,
        replay_window_seconds: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.leave_service = leave_service
        self.signing_secret = signing_secret
        self.allow_unsigned = allow_unsigned
        self.replay_window_seconds = replay_window_seconds
        self.clock = clock

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def verify_request(self, timestamp: Optional[str], signature: Optional[str], raw_body: str) -> None:
        """Raise ``AuthenticationError`` unless the request is fresh and correctly signed."""
        try:
            sent_at = int(timestamp)
        except (TypeError, ValueError):
            raise AuthenticationError("Missing or malformed Slack request timestamp")

        if abs(self.clock() - sent_at) > self.replay_window_seconds:
            logger.warning("Rejected Slack request outside the replay window", extra={"slack_ts": sent_at})
            raise AuthenticationError("Request too old")

        if not self.signing_secret:
            if self.allow_unsigned:
                logger.warning("Slack signature check skipped: no signing secret configured")
                return
            raise AuthenticationError("Slack signing secret is not configured")

        expected = compute_signature(self.signing_secret, timestamp, raw_body)
        if not hmac.compare_digest(expected.encode(), (signature or "").encode()):
            logger.warning("Rejected Slack request with invalid signature")
            raise AuthenticationError("Invalid signature")

    # ------------------------------------------------------------------
    # Interaction handling
    # ------------------------------------------------------------------
    def handle(self, raw_body: str, timestamp: Optional[str], signature: Optional[str]) -> GatewayResult:
        self.verify_request(timestamp, signature, raw_body)

        payload = self._parse_payload(raw_body)
        if payload is None or payload.get("type") != "block_actions":
            return GatewayResult()

        response_url = payload.get("response_url")
        if not isinstance(response_url, str):
            response_url = None
        actions = payload.get("actions") or []
        if not isinstance(actions, list) or not actions:
            return GatewayResult(response_url=response_url)

        user = payload.get("user") or {}
        try:
            if not isinstance(actions[0], dict) or not isinstance(user, dict):
                raise ValueError("Unexpected action or user shape")
            context = parse_action_context(actions[0].get("value", ""))
        except ValueError as e:
            logger.warning(f"Invalid Slack action payload: {e}")
            return GatewayResult(INVALID_PAYLOAD_TEXT, response_url)

        slack_user_id = user.get("id")
        if not isinstance(slack_user_id, str):
            slack_user_id = None
        actor = self._resolve_actor(slack_user_id)
        if actor is None:
            logger.info(f"Slack user {slack_user_id} is not linked to an employee")
            return GatewayResult(NOT_LINKED_TEXT, response_url)

        leave = self.db.get(LeaveRequest, context.request_id)
        if leave is None:
            return GatewayResult("⚠️  Leave request not found.", response_url)

        try:
            if context.stage == Stage.MANAGER:
                check_manager_guard(leave, actor)
            else:
                check_hr_guard(leave, actor)
        except InvalidStateError as e:
            logger.info(f"Slack decision on {leave.id} refused: {e.message}")
            return GatewayResult(f"⚠️  {e.message}", response_url)

        return self._apply(context, leave, actor, response_url)

    def _apply(self, context: ActionContext, leave: LeaveRequest, actor: Employee,
               response_url: Optional[str]) -> GatewayResult:
        comment = "Approved via Slack" if context.approved else "Rejected via Slack"
        try:
            if context.stage == Stage.MANAGER:
                leave = self.leave_service.manager_decision(context.request_id, context.approved, comment, actor)
            else:
                leave = self.leave_service.hr_approval(context.request_id, context.approved, comment, actor)
        except AppException as e:
            # Lost a race with another decision, or HR approval found the balance short
            logger.info(f"Slack decision on {context.request_id} failed: {e.message}")
            return GatewayResult(f"⚠️  {e.message}", response_url)

        text = slack_messages.decision_result_text(leave, context.stage, context.approved, actor.name, comment)
        return GatewayResult(text, response_url, applied=True)

    def _parse_payload(self, raw_body: str) -> Optional[dict]:
        form = parse_qs(raw_body)
        payload_values = form.get("payload")
        if not payload_values:
            return None
        try:
            payload = json.loads(payload_values[0])
        except json.JSONDecodeError:
            logger.warning("Slack payload is not valid JSON")
            return None
        return payload if isinstance(payload, dict) else None

    def _resolve_actor(self, slack_user_id: Optional[str]) -> Optional[Employee]:
        if not slack_user_id:
            return None
        return (
            self.db.query(Employee)
            .filter(Employee.slack_member_id == slack_user_id)
            .first()
        )
