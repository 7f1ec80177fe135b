"""
Candidate rule extraction from free-text policy documents.

Two backends are available: a keyword heuristic that needs no network access,
and an OpenAI chat completion backend used when an API key is configured.
Both return unsaved RuleDraft candidates; adding them to the store is left to
the caller, which runs them through the store's validation.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

import requests

from mizan.config import Settings
from mizan.errors import ExtractionError, ValidationError
from mizan.logging import get_logger
from mizan.rules.models import Action, RuleDraft
from mizan.rules.store import validate_draft


logger = get_logger(__name__)


class RuleExtractor(Protocol):
    source: str

    def extract(self, text: str) -> list[RuleDraft]: ...


# =============================================================================
# Heuristic extraction
# =============================================================================


OBLIGATION_KEYWORDS = ("must", "shall", "require", "if", "يجب", "إذا")
REJECT_KEYWORDS = ("reject", "رفض")
REVIEW_KEYWORDS = ("review", "مراجعة")

NAME_LENGTH = 60
FALLBACK_LINE_LIMIT = 10
FALLBACK_MIN_LENGTH = 10


class HeuristicExtractor:
    """Turns obligation-like lines of text into rule candidates."""

    source = "heuristic"

    def extract(self, text: str) -> list[RuleDraft]:
        lines = [line.strip() for line in text.splitlines() if line.strip()]

        drafts = [
            self._draft(line, self._classify(line))
            for line in lines
            if any(keyword in line.lower() for keyword in OBLIGATION_KEYWORDS)
        ]
        if drafts:
            return drafts

        # No obligation wording: one REVIEW candidate per meaningful line.
        return [
            self._draft(line, Action.REVIEW)
            for line in lines[:FALLBACK_LINE_LIMIT]
            if len(line) > FALLBACK_MIN_LENGTH
        ]

    @staticmethod
    def _classify(line: str) -> Action:
        lower = line.lower()
        if any(keyword in lower for keyword in REJECT_KEYWORDS):
            return Action.REJECTED
        if any(keyword in lower for keyword in REVIEW_KEYWORDS):
            return Action.REVIEW
        return Action.APPROVED

    @staticmethod
    def _draft(line: str, action: Action) -> RuleDraft:
        return RuleDraft(
            name=line[:NAME_LENGTH].strip(),
            condition=line,
            action=action,
            reason=line,
            priority=1,
        )


# =============================================================================
# OpenAI extraction
# =============================================================================


OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are a legal rules extraction engine. Given policy text, extract structured rules. "
    "Return a JSON array of objects with fields: name, condition, action "
    "(APPROVED/REJECTED/REVIEW), reason, priority (integer 1-3). "
    "Write each condition as comparisons between a field name and a literal "
    "(==, !=, >, <, >=, <=) joined with AND, OR, NOT and parentheses, "
    "with strings in single quotes, for example: amount > 1000 AND country == 'SA'. "
    "Return ONLY the JSON array."
)

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


class OpenAIExtractor:
    """Extracts rule candidates with an OpenAI chat completion."""

    source = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def extract(self, text: str) -> list[RuleDraft]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "temperature": 0.2,
        }
        try:
            response = self.session.post(
                OPENAI_CHAT_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ExtractionError(f"Extraction failed: {exc}") from exc

        if not isinstance(data, dict):
            raise ExtractionError("Extraction failed: response body is not a JSON object")
        content = (data.get("choices") or [{}])[0].get("message", {}).get("content") or "[]"
        return self.parse_content(content)

    @staticmethod
    def parse_content(content: str) -> list[RuleDraft]:
        """Parse a model reply into validated drafts."""
        cleaned = _CODE_FENCE.sub("", content).strip()
        try:
            items: Any = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ExtractionError(f"Extraction failed: model returned invalid JSON ({exc})") from exc
        if not isinstance(items, list):
            raise ExtractionError("Extraction failed: model did not return a JSON array")

        drafts = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ExtractionError(f"Extraction failed: item #{index} is not an object")
            item = {key: value for key, value in item.items() if key != "id"}
            item.setdefault("reason", "")
            try:
                drafts.append(validate_draft(item))
            except ValidationError as exc:
                raise ExtractionError(
                    f"Extraction failed: item #{index} is not a valid rule", exc.details
                ) from exc
        return drafts


def get_extractor(settings: Settings) -> RuleExtractor:
    """Pick the OpenAI backend when a key is configured, else the heuristic."""
    if settings.openai_api_key:
        return OpenAIExtractor(
            settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.openai_timeout,
        )
    return HeuristicExtractor()
