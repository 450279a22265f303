"""
Slack interactivity endpoint.

Slack retries any interaction that is not acknowledged within three seconds.
The endpoint is a plain ``def`` so FastAPI runs the decision in its
threadpool, and everything that talks to Slack (follow-up DMs and the
replacement of the original message) runs as a background task after the
acknowledgement.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from lams.core.config import settings
from lams.database import get_db
from lams.routers.deps import get_notifier
from lams.services.leave_service import LeaveService
from lams.services.slack_gateway import (
    SLACK_SIGNATURE_HEADER, SLACK_TIMESTAMP_HEADER, SlackDecisionGateway,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])


def get_slack_gateway(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier)
) -> SlackDecisionGateway:
    leave_service = LeaveService(db, notifier=notifier, defer=background_tasks.add_task)
    return SlackDecisionGateway(
        db,
        leave_service,
        signing_secret=settings.slack.signing_secret,
        allow_unsigned=settings.slack.allow_unsigned,
        replay_window_seconds=settings.slack.replay_window_seconds,
    )


async def read_raw_body(request: Request) -> str:
    # The signature covers the exact bytes Slack sent
    return (await request.body()).decode("utf-8")


@router.post("/interactions")
def slack_interactions(
    request: Request,
    background_tasks: BackgroundTasks,
    raw_body: str = Depends(read_raw_body),
    gateway: SlackDecisionGateway = Depends(get_slack_gateway),
    notifier=Depends(get_notifier)
):
    result = gateway.handle(
        raw_body,
        request.headers.get(SLACK_TIMESTAMP_HEADER),
        request.headers.get(SLACK_SIGNATURE_HEADER),
    )
    if result.text and result.response_url:
        background_tasks.add_task(notifier.replace_message, result.response_url, result.text)
    return {"ok": True}
