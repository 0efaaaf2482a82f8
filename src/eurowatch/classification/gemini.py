"""Topic classification against the controlled vocabulary via the Gemini SDK."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from importlib import import_module
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
import asyncio
import logging
import threading
import time

import httpx

from ..core.errors import ClassificationError, ConfigurationError, SchemaValidationError
from ..core.types import ClassificationFailure, TopicClassification
from .rate_limit import MinuteRateLimiter
from .vocabulary import SYSTEM_PROMPT, build_user_message, canonical_label, extract_json_object

LOGGER = logging.getLogger(__name__)


class TopicState(str, Enum):
    UNCLASSIFIED = "unclassified"
    IN_FLIGHT = "in_flight"
    CLASSIFIED = "classified"
    FAILED = "failed"


@dataclass(slots=True)
class ClassificationReport:
    """Outcome of classifying a batch of distinct topics."""

    successes: List[TopicClassification] = field(default_factory=list)
    failures: List[ClassificationFailure] = field(default_factory=list)
    states: Dict[str, TopicState] = field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    requests: int = 0

    @property
    def topics_count(self) -> int:
        return len(self.states)


class GeminiTopicClassifier:
    """Maps distinct topic strings to exactly one label of the controlled vocabulary."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com",
        model: str = "gemini-2.5-flash-lite",
        timeout: float = 30.0,
        max_retries: int = 3,
        max_output_tokens: int = 256,
        concurrency: int = 50,
        requests_per_minute: int = 5000,
        input_cost_per_million: float = 0.10,
        output_cost_per_million: float = 0.40,
        client: Any = None,
        rate_limiter: Optional[MinuteRateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._genai = import_module("google.genai")
        self._types = import_module("google.genai.types")
        self._errors = import_module("google.genai.errors")
        self._model = model
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._max_output_tokens = max_output_tokens
        self._concurrency = max(1, concurrency)
        self._input_rate = input_cost_per_million
        self._output_rate = output_cost_per_million
        self._sleep = sleep
        self._clock = clock
        if client is None:
            if not api_key:
                raise ConfigurationError("A Gemini API key must be provided")
            client = self._genai.Client(api_key=api_key, http_options=self._build_http_options(base_url))
        self._client = client
        self._rate_limiter = rate_limiter or MinuteRateLimiter(requests_per_minute, clock=clock, sleep=sleep)

    @property
    def model(self) -> str:
        return self._model

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @concurrency.setter
    def concurrency(self, value: int) -> None:
        self._concurrency = max(1, value)

    def _build_http_options(self, base_url: str):
        http_options_kwargs: dict[str, object] = {}
        if base_url:
            http_options_kwargs["base_url"] = base_url.rstrip("/")
        if self._timeout > 0:
            # HttpOptions expects milliseconds.
            http_options_kwargs["timeout"] = int(self._timeout * 1000)
        return self._types.HttpOptions(**http_options_kwargs)

    def _build_generation_config(self):
        return self._types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            temperature=0.0,
            max_output_tokens=self._max_output_tokens,
            response_mime_type="application/json",
        )

    # --- single topic ----------------------------------------------------
    async def classify_topic(
        self, topic: str, *, report: Optional[ClassificationReport] = None
    ) -> TopicClassification:
        """Classify one topic; raises :class:`ClassificationError` on failure.

        Transport and socket errors, timeouts and unparsable replies are retried with
        1 s, 2 s, 4 s backoff. A label outside the vocabulary raises
        :class:`SchemaValidationError` straight away.
        """

        text = (topic or "").strip()
        if not text:
            raise ClassificationError(topic, "Topic must not be empty")

        config = self._build_generation_config()
        attempts = self._max_retries + 1
        topic_cost = 0.0
        last_exc: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            await self._rate_limiter.acquire()
            try:
                response = await asyncio.wait_for(
                    self._client.aio.models.generate_content(
                        model=self._model,
                        contents=build_user_message(text),
                        config=config,
                    ),
                    timeout=self._timeout,
                )
            except (self._errors.APIError, httpx.HTTPError, asyncio.TimeoutError, OSError) as exc:
                last_exc = exc
                LOGGER.warning(
                    "Gemini request for %r failed (attempt %s/%s): %s", text, attempt, attempts, str(exc) or type(exc).__name__
                )
            else:
                input_tokens, output_tokens = self._usage(response)
                cost = self._cost(input_tokens, output_tokens)
                topic_cost += cost
                if report is not None:
                    report.requests += 1
                    report.input_tokens += input_tokens
                    report.output_tokens += output_tokens
                    report.cost += cost
                payload = extract_json_object(self._extract_text(response))
                if payload is not None and payload.get("main_topic"):
                    return self._to_classification(text, payload, topic_cost)
                last_exc = ClassificationError(text, "Reply did not contain a main_topic")
                LOGGER.warning(
                    "Unparsable Gemini reply for %r (attempt %s/%s)", text, attempt, attempts
                )
            if attempt < attempts:
                await self._sleep(float(2 ** (attempt - 1)))
        raise ClassificationError(text, f"Classification failed after {attempts} attempts: {last_exc}") from last_exc

    def _to_classification(self, topic: str, payload: Dict[str, Any], cost: float) -> TopicClassification:
        label = canonical_label(payload.get("main_topic"))
        if label is None:
            raise SchemaValidationError(
                topic, f"main_topic {payload.get('main_topic')!r} is not part of the controlled vocabulary"
            )

        confidence = payload.get("confidence")
        if confidence is not None:
            try:
                confidence = float(confidence)
            except (TypeError, ValueError) as exc:
                raise SchemaValidationError(topic, f"confidence {confidence!r} is not a number") from exc
            if not 0.0 <= confidence <= 1.0:
                raise SchemaValidationError(topic, f"confidence {confidence} is outside [0, 1]")

        specific_focus = payload.get("specific_focus")
        if specific_focus is not None:
            specific_focus = str(specific_focus).strip() or None
        rationale = payload.get("rationale_short") or payload.get("reason")

        return TopicClassification(
            topic_text=topic,
            main_topic=label,
            specific_focus=specific_focus,
            confidence=confidence,
            classified_by=self._model,
            classified_at=int(self._clock()),
            cost=cost,
            rationale=str(rationale).strip() if rationale else None,
        )

    # --- batches ---------------------------------------------------------
    async def classify_many(
        self, topics: Iterable[str], *, cancel_event: Optional[threading.Event] = None
    ) -> ClassificationReport:
        """Classify distinct trimmed ``topics`` with at most ``concurrency`` requests in flight."""

        distinct = list(dict.fromkeys(topic.strip() for topic in topics if topic and topic.strip()))
        report = ClassificationReport(states={topic: TopicState.UNCLASSIFIED for topic in distinct})
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _run(topic: str) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return
                report.states[topic] = TopicState.IN_FLIGHT
                try:
                    result = await self.classify_topic(topic, report=report)
                except ClassificationError as exc:
                    report.states[topic] = TopicState.FAILED
                    report.failures.append(ClassificationFailure(topic_text=topic, error=str(exc)))
                    LOGGER.warning("Could not classify %r: %s", topic, exc)
                except Exception as exc:
                    report.states[topic] = TopicState.FAILED
                    report.failures.append(ClassificationFailure(topic_text=topic, error=str(exc) or type(exc).__name__))
                    LOGGER.exception("Unexpected error while classifying %r", topic)
                else:
                    report.states[topic] = TopicState.CLASSIFIED
                    report.successes.append(result)

        await asyncio.gather(*(_run(topic) for topic in distinct))

        order = {topic: index for index, topic in enumerate(distinct)}
        report.successes.sort(key=lambda item: order[item.topic_text])
        report.failures.sort(key=lambda item: order[item.topic_text])
        LOGGER.info(
            "Classified %d/%d topics (%d failed, cost %.6f)",
            len(report.successes),
            len(distinct),
            len(report.failures),
            report.cost,
        )
        return report

    def classify(
        self, topics: Iterable[str], *, cancel_event: Optional[threading.Event] = None
    ) -> ClassificationReport:
        """Synchronous entry point running :meth:`classify_many` in a fresh event loop."""

        return asyncio.run(self.classify_many(topics, cancel_event=cancel_event))

    # --- helpers ---------------------------------------------------------
    def _cost(self, input_tokens: int, output_tokens: int) -> float:
        return input_tokens * self._input_rate / 1_000_000 + output_tokens * self._output_rate / 1_000_000

    @staticmethod
    def _usage(response: Any) -> Tuple[int, int]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return 0, 0
        return (
            int(getattr(usage, "prompt_token_count", None) or 0),
            int(getattr(usage, "candidates_token_count", None) or 0),
        )

    @staticmethod
    def _extract_text(response: Any) -> str:
        text = (getattr(response, "text", None) or "").strip()
        if text:
            return text
        for candidate in getattr(response, "candidates", None) or ():
            content = getattr(candidate, "content", None)
            if content and content.parts:
                for part in content.parts:
                    if getattr(part, "text", None):
                        candidate_text = part.text.strip()
                        if candidate_text:
                            return candidate_text
        return ""


__all__ = ["ClassificationReport", "GeminiTopicClassifier", "TopicState"]
