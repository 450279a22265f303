"""Block Kit rendering for leave notifications and Slack decision results."""
import json
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from lams.core.config import settings
from lams.models.leave_request import LeaveRequest, LeaveStatus
from lams.services.leave_workflow import Decision, Stage

STATUS_LABELS = {
    LeaveStatus.PENDING_MANAGER: "⏳ Pending Manager Approval",
    LeaveStatus.PENDING_HR: "⏳ Pending HR Approval",
    LeaveStatus.APPROVED: "✅ Approved",
    LeaveStatus.REJECTED: "❌ Rejected",
    LeaveStatus.CANCELLED: "🚫 Cancelled",
}

Message = Tuple[str, List[dict]]


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value else "?"


def _footer() -> dict:
    now = datetime.now(ZoneInfo(settings.timezone))
    return {
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"LAMS  •  {now:%d %b %Y, %I:%M %p}"}],
    }


def notification_blocks(emoji: str, title: str, details: Dict[str, object]) -> List[dict]:
    text = f"{emoji}  *{title}*\n\n"
    for key, value in details.items():
        if value not in (None, ""):
            text += f"{key}:  {value}\n"
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": text}},
        _footer(),
        {"type": "divider"},
    ]


def replacement_blocks(text: str) -> List[dict]:
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": text}},
        _footer(),
        {"type": "divider"},
    ]


def action_value(request_id: str, decision: str, stage: str) -> str:
    return json.dumps({"requestId": request_id, "decision": decision, "stage": stage})


def decision_buttons(request_id: str, stage: str) -> dict:
    return {
        "type": "actions",
        "block_id": f"leave_{stage}_decision",
        "elements": [
            {
                "type": "button",
                "action_id": f"leave_{stage}_approve",
                "style": "primary",
                "text": {"type": "plain_text", "text": "Approve"},
                "value": action_value(request_id, Decision.APPROVE, stage),
            },
            {
                "type": "button",
                "action_id": f"leave_{stage}_reject",
                "style": "danger",
                "text": {"type": "plain_text", "text": "Reject"},
                "value": action_value(request_id, Decision.REJECT, stage),
            },
        ],
    }


def _approvals_link() -> dict:
    return {
        "type": "section",
        "text": {"type": "mrkdwn", "text": f"👉  *<{settings.approvals_url}|Open LAMS to Approve / Reject>*"},
    }


def _leave_details(leave: LeaveRequest) -> Dict[str, object]:
    return {
        "👤  *Employee*": leave.employee_name,
        "📋  *Type*": leave.leave_type.label,
        "📅  *Dates*": f"{format_date(leave.start_date)} → {format_date(leave.end_date)}",
        "🔢  *Days*": leave.total_days,
    }


def manager_request_message(leave: LeaveRequest) -> Message:
    details = _leave_details(leave)
    details["📝  *Reason*"] = leave.reason
    blocks = notification_blocks("🟡", "New Leave Request — Pending Your Approval", details)
    blocks.append(decision_buttons(leave.id, Stage.MANAGER))
    blocks.append(_approvals_link())
    return f"New leave request from {leave.employee_name}", blocks


def hr_request_message(leave: LeaveRequest) -> Message:
    details = _leave_details(leave)
    details["👔  *Manager*"] = leave.manager_name
    details["💬  *Manager Comment*"] = leave.manager_comment
    blocks = notification_blocks("🟠", "Leave Request — Pending HR Approval", details)
    blocks.append(decision_buttons(leave.id, Stage.HR))
    blocks.append(_approvals_link())
    return f"Leave pending HR approval: {leave.employee_name}", blocks


def employee_update_message(leave: LeaveRequest, deduction_details: Optional[str] = None) -> Message:
    emoji = {
        LeaveStatus.PENDING_HR: "🟠",
        LeaveStatus.APPROVED: "🟢",
        LeaveStatus.REJECTED: "🔴",
        LeaveStatus.CANCELLED: "⚪",
    }.get(leave.status, "🔵")
    details = _leave_details(leave)
    details["📌  *Status*"] = STATUS_LABELS[leave.status]
    details["👔  *Manager*"] = leave.manager_name
    details["💬  *Manager Comment*"] = leave.manager_comment
    details["🏢  *HR Comment*"] = leave.hr_comment
    details["🧮  *Leave Deduction*"] = deduction_details
    blocks = notification_blocks(emoji, "Leave Request Update", details)
    return f"Your leave request is now {STATUS_LABELS[leave.status]}", blocks


def decision_result_text(leave: LeaveRequest, stage: str, approved: bool, actor_name: str, comment: str) -> str:
    """Text that replaces the interactive message once a Slack decision went through."""
    if stage == Stage.MANAGER:
        if approved and leave.status == LeaveStatus.PENDING_HR:
            emoji, title = "✅", "Approved by Manager — Forwarded to HR"
        elif approved:
            emoji, title = "✅", "Approved by Manager"
        else:
            emoji, title = "❌", "Rejected by Manager"
        decided_by = f"👔 *Decided by:* {actor_name}"
    else:
        emoji, title = ("🟢", "Approved by HR") if approved else ("🔴", "Rejected by HR")
        decided_by = f"🏢 *Decided by:* {actor_name}"

    return (
        f"{emoji}  *Leave Request — {title}*\n\n"
        f"👤 *Employee:* {leave.employee_name}\n"
        f"📋 *Type:* {leave.leave_type.label}\n"
        f"📅 *Dates:* {format_date(leave.start_date)} → {format_date(leave.end_date)}\n"
        f"💬 *Comment:* {comment}\n"
        f"{decided_by}"
    )
