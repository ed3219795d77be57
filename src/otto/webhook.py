import logging
from dataclasses import asdict, dataclass

import requests

from .config import WebhookConfig
from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class ReleaseReport:
    """The summary POSTed to the webhook after a successful push."""

    user: str
    branch: str
    type: str
    message: str
    description: str


def send_report(config: WebhookConfig, report: ReleaseReport) -> bool:
    """POSTs a release report as JSON. Never raises.

    Args:
        config (WebhookConfig): Where to send the report; no-op when the URL is unset.
        report (ReleaseReport): The payload.

    Returns:
        bool: True if the webhook accepted the report.
    """
    if not config.url:
        return False
    try:
        resp = requests.post(config.url, json=asdict(report), timeout=config.timeout)
        resp.raise_for_status()
        return True
    except requests.RequestException as e:
        logger.debug(f"Webhook report failed: {e}")
        return False
