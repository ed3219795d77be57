import json
import logging
from dataclasses import dataclass

from openai import OpenAI, OpenAIError

from .config import AIConfig
from .constants import AI_KEY_ENV, APP_NAME, COMMIT_PROMPT
from .errors import AIError, MissingCredentialError

logger = logging.getLogger(APP_NAME)

FALLBACK_MESSAGE = "chore: update"
FALLBACK_DESCRIPTION = "No description provided."


@dataclass(frozen=True)
class CommitSuggestion:
    """A commit subject and a technical summary suggested for a diff.

    Attributes:
        message (str): A conventional-commit subject line.
        description (str): A short technical summary of the change.
    """

    message: str
    description: str

    @classmethod
    def from_payload(cls, payload: object) -> "CommitSuggestion":
        """Builds a suggestion from the model's JSON, filling in missing keys."""
        data = payload if isinstance(payload, dict) else {}
        message = data.get("msg")
        description = data.get("desc")
        return cls(
            message=str(message).strip() if message else FALLBACK_MESSAGE,
            description=str(description).strip() if description else FALLBACK_DESCRIPTION,
        )


class CommitMessageGenerator:
    """Thin wrapper around the OpenAI Chat Completions API.

    The model is asked for a JSON object with `msg` and `desc` keys.
    """

    def __init__(self, config: AIConfig, client: OpenAI | None = None):
        """
        Raises:
            MissingCredentialError: If no API key is configured and no client is given.
        """
        if client is None:
            if not config.api_key:
                raise MissingCredentialError(f"Missing {AI_KEY_ENV}")
            client = OpenAI(api_key=config.api_key, timeout=config.timeout)
        self.client = client
        self.config = config

    def suggest(self, diff: str) -> CommitSuggestion:
        """Asks the model to describe a staged diff.

        Args:
            diff (str): The staged patch; truncated to `max_diff_chars`.

        Raises:
            AIError: If the request fails or the reply is not valid JSON.
        """
        prompt = COMMIT_PROMPT + diff[: self.config.max_diff_chars]
        try:
            resp = self.client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error(f"AI request failed: {e}")
            raise AIError(f"AI request failed: {e}") from e

        content = resp.choices[0].message.content if resp.choices else None
        try:
            payload = json.loads(content or "{}")
        except json.JSONDecodeError as e:
            logger.error(f"AI reply was not JSON: {content!r}")
            raise AIError("AI reply was not valid JSON") from e

        return CommitSuggestion.from_payload(payload)
