import json
import logging
from typing import Optional

from openai import OpenAI

from app.schemas.video_record import Sensitivity

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a content safety expert. Evaluate the sensitivity of a video. "
    "Classify it as either SAFE or FLAGGED based on potential harmful content, violence, or sensitive themes. "
    "If it sounds like a normal corporate, family, or educational video, it is SAFE. "
    "If it contains mentions of violence, illegal acts, or extreme adult themes, it is FLAGGED. "
    'Reply in JSON: {"classification": "SAFE" | "FLAGGED", "reason": "<short reason>"}.'
)


class SensitivityClassifier:
    """Asks a chat model whether a video's title and description are sensitive.

    ``classify`` never raises. Any failure (no API key, network error, bad
    JSON) returns the fallback verdict: SAFE when ``fail_open`` is set,
    FLAGGED otherwise.
    """

    def __init__(self, api_key: Optional[str], model: str = 'gpt-4o-mini', fail_open: bool = True,
                 timeout: float = 30.0, client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.model = model
        self.fail_open = fail_open
        self.timeout = timeout
        self._client = client

    @property
    def fallback(self) -> Sensitivity:
        return Sensitivity.SAFE if self.fail_open else Sensitivity.FLAGGED

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def classify(self, title: str, description: str) -> Sensitivity:
        if self._client is None and not self.api_key:
            logger.warning("No OpenAI API key configured; marking %r as %s", title, self.fallback.value)
            return self.fallback
        try:
            return self._classify(title, description)
        except Exception:
            logger.exception("Sensitivity analysis failed; falling back to %s", self.fallback.value)
            return self.fallback

    def _classify(self, title: str, description: str) -> Sensitivity:
        resp = self.client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Evaluate the sensitivity of the following video:\nTitle: {title}\nDescription: {description}"},
            ],
            temperature=0,
        )
        raw = (resp.choices[0].message.content or "").strip() or "{}"
        result = json.loads(raw)
        classification = str(result.get("classification", "")).upper()
        if classification == "FLAGGED":
            logger.info("Video %r flagged: %s", title, result.get("reason"))
            return Sensitivity.FLAGGED
        if classification == "SAFE":
            return Sensitivity.SAFE
        raise ValueError(f"Unexpected classification {classification!r}")
