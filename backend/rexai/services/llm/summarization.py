"""Document summarization with provider failover.

Summarizers are tried in order (OpenAI first, then Gemini) until one returns
a usable summary, which is then written to the document store exactly once.
The chain runs detached from the ingestion request, so it reports its result
as a ``SummaryOutcome`` and never raises provider errors to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Optional, Protocol

from rexai.config import settings
from rexai.logging import document_id_var

logger = logging.getLogger("rexai.summarization")

SUMMARY_PROMPT = """You are a medical document summarizer. Create a brief, informative summary of the following medical document or prescription.
Focus on:
- Patient information (if present)
- Key diagnoses or conditions
- Medications prescribed (names, dosages, frequency)
- Important dates and follow-up instructions
- Any warnings or precautions

Keep the summary concise (2-3 paragraphs max)."""


class SummarizationFailure(Exception):
    """Raised when no provider in the chain produced a summary."""

    def __init__(self, document_id: int, attempts: Sequence["SummaryAttempt"]):
        self.document_id = document_id
        self.attempts = list(attempts)
        details = "; ".join(f"{a.provider}: {a.error}" for a in self.attempts)
        super().__init__(
            f"All summarization providers failed for document {document_id}"
            + (f" ({details})" if details else "")
        )


class Summarizer(Protocol):
    name: str

    async def summarize(self, text: str) -> str:
        ...


@dataclass
class SummaryAttempt:
    """Result of one provider call."""

    provider: str
    summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.summary is not None


@dataclass
class SummaryOutcome:
    """Result of a full failover run for one document."""

    document_id: int
    attempts: list[SummaryAttempt] = field(default_factory=list)
    summary: Optional[str] = None
    provider: Optional[str] = None
    failure: Optional[SummarizationFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.summary is not None and self.failure is None


class OpenAISummarizer:
    """Primary summarizer using OpenAI chat completions."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_input_chars: int | None = None,
    ):
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_summary_model
        self.max_input_chars = max_input_chars or settings.openai_summary_max_input_chars
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("OPENAI_API_KEY is not configured")
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def summarize(self, text: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SUMMARY_PROMPT},
                {"role": "user", "content": text[: self.max_input_chars]},
            ],
            temperature=settings.summary_temperature,
            max_tokens=settings.summary_max_output_tokens,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class GeminiSummarizer:
    """Fallback summarizer using Google Gemini."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_input_chars: int | None = None,
    ):
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_summary_model
        self.max_input_chars = max_input_chars or settings.gemini_summary_max_input_chars
        self._client = None

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("GEMINI_API_KEY is not configured")
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def summarize(self, text: str) -> str:
        from google.genai import types

        prompt = f"{SUMMARY_PROMPT}\n\nDOCUMENT TEXT:\n{text[: self.max_input_chars]}"
        # The google-genai client call is blocking.
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                max_output_tokens=settings.summary_max_output_tokens,
                temperature=settings.summary_temperature,
            ),
        )
        return response.text or ""


# Opens a document store for the duration of one summary write.
StoreScope = Callable[[], AbstractAsyncContextManager]


class SummarizationChain:
    """Tries summarizers in order and writes the first usable summary."""

    def __init__(
        self,
        summarizers: Sequence[Summarizer],
        store_scope: StoreScope,
        timeout_seconds: float | None = None,
    ):
        if not summarizers:
            raise ValueError("At least one summarizer is required")
        self.summarizers = list(summarizers)
        self.store_scope = store_scope
        self.timeout_seconds = timeout_seconds or settings.summary_timeout_seconds

    async def _attempt(self, summarizer: Summarizer, text: str) -> SummaryAttempt:
        try:
            summary = await asyncio.wait_for(
                summarizer.summarize(text), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            return SummaryAttempt(
                provider=summarizer.name,
                error=f"timed out after {self.timeout_seconds:.0f}s",
            )
        except Exception as exc:
            return SummaryAttempt(provider=summarizer.name, error=str(exc) or repr(exc))

        if not isinstance(summary, str) or not summary.strip():
            return SummaryAttempt(provider=summarizer.name, error="empty response")
        return SummaryAttempt(provider=summarizer.name, summary=summary.strip())

    async def summarize_with_failover(self, document_id: int, text: str) -> SummaryOutcome:
        """Summarize a document and store the result.

        Returns:
            The outcome, including every provider attempt. When all providers
            fail, ``outcome.failure`` holds the ``SummarizationFailure`` and
            the document summary is left untouched.
        """
        token = document_id_var.set(document_id)
        try:
            outcome = SummaryOutcome(document_id=document_id)
            for summarizer in self.summarizers:
                attempt = await self._attempt(summarizer, text)
                outcome.attempts.append(attempt)
                if attempt.succeeded:
                    outcome.summary = attempt.summary
                    outcome.provider = attempt.provider
                    break
                logger.warning(
                    "Summarizer %s failed: %s", attempt.provider, attempt.error
                )

            if outcome.summary is None:
                outcome.failure = SummarizationFailure(document_id, outcome.attempts)
                logger.error("%s", outcome.failure)
                return outcome

            async with self.store_scope() as store:
                await store.update_document_summary(document_id, outcome.summary)
            logger.info("Stored summary from %s", outcome.provider)
            return outcome
        finally:
            document_id_var.reset(token)


def default_summarizers() -> list[Summarizer]:
    return [OpenAISummarizer(), GeminiSummarizer()]
