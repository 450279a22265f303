import logging
from typing import Iterable, List, Optional

import requests
from slack_sdk.web.client import WebClient
from slack_sdk.errors import SlackApiError

from lams.core.config import settings
from lams.services.slack_messages import replacement_blocks

logger = logging.getLogger(__name__)


class SlackNotifier:
    """
    Fire-and-forget Slack sink.

    Every public method makes at most one attempt per recipient and never
    raises: delivery failures are logged and dropped, because by the time a
    notification goes out the state transition has already committed.
    """

    def __init__(self, bot_token: Optional[str] = None, client: Optional[WebClient] = None,
                 timeout: int = 30):
        if client is None and bot_token:
            client = WebClient(token=bot_token, timeout=timeout)
        self.client = client
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "SlackNotifier":
        return cls(bot_token=settings.slack.bot_token, timeout=settings.slack.timeout_seconds)

    def send(self, recipient_ids: Iterable[Optional[str]], text: str, blocks: Optional[List[dict]] = None) -> None:
        """DM each Slack member id; blank ids are skipped."""
        targets = [r for r in recipient_ids if r]
        if not targets:
            logger.info("Slack notification skipped: no linked recipients")
            return
        if self.client is None:
            logger.info(f"Slack not configured, skipping notification to {len(targets)} recipient(s)")
            return

        for slack_id in targets:
            try:
                # Using the member id as channel opens a DM
                self.client.chat_postMessage(channel=slack_id, text=text, blocks=blocks)
            except SlackApiError as e:
                logger.warning(f"Slack DM to {slack_id} failed: {e.response.get('error')}")
            except Exception as e:
                logger.warning(f"Slack DM to {slack_id} failed: {e}", exc_info=True)

    def replace_message(self, response_url: Optional[str], text: str) -> None:
        """Replace the interactive message a button click came from."""
        if not response_url:
            return
        try:
            response = requests.post(
                response_url,
                json={"replace_original": True, "text": text, "blocks": replacement_blocks(text)},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to replace Slack message: {e}")
