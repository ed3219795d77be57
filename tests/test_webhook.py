from unittest.mock import MagicMock

import requests

from otto.config import WebhookConfig
from otto.webhook import ReleaseReport, send_report

REPORT = ReleaseReport(
    user="Ada",
    branch="main",
    type="patch",
    message="feat: add login",
    description="Adds a login form.",
)


def test_disabled_without_url(mocker: MagicMock) -> None:
    mock_post = mocker.patch("otto.webhook.requests.post")

    assert send_report(WebhookConfig(), REPORT) is False
    mock_post.assert_not_called()


def test_posts_report_as_json(mocker: MagicMock) -> None:
    mock_post = mocker.patch("otto.webhook.requests.post")

    ok = send_report(WebhookConfig(url="https://hook.example", timeout=5.0), REPORT)

    assert ok is True
    mock_post.assert_called_once_with(
        "https://hook.example",
        json={
            "user": "Ada",
            "branch": "main",
            "type": "patch",
            "message": "feat: add login",
            "description": "Adds a login form.",
        },
        timeout=5.0,
    )


def test_failures_are_swallowed(mocker: MagicMock) -> None:
    mocker.patch(
        "otto.webhook.requests.post",
        side_effect=requests.ConnectionError("unreachable"),
    )

    assert send_report(WebhookConfig(url="https://hook.example"), REPORT) is False


def test_http_error_is_a_failure(mocker: MagicMock) -> None:
    resp = MagicMock()
    resp.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    mocker.patch("otto.webhook.requests.post", return_value=resp)

    assert send_report(WebhookConfig(url="https://hook.example"), REPORT) is False
