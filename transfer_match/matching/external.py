"""External scorer adapters and bounded-concurrency annotation.

Adapters make a single attempt per candidate and fail open: timeouts,
non-2xx responses, malformed bodies and transport errors all become
"no annotation". Only a generic reason is logged; provider error details
never cross the adapter boundary.
"""
import asyncio
import contextlib
import json
import logging
import math
from contextvars import ContextVar
from typing import Any, AsyncIterator, Iterable, Optional

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from transfer_match.exceptions import ConfigurationError, ExternalScorerUnavailable
from transfer_match.matching.scorer_protocol import Annotation, ExternalScorer
from transfer_match.profiles.models import Profile

logger = logging.getLogger(__name__)

# Session shared by the calls of one annotation run (see HttpExternalScorer.session_scope)
_run_session: ContextVar[Optional[aiohttp.ClientSession]] = ContextVar("external_scorer_session", default=None)


class AnnotationPayload(BaseModel):
    """Expected response body from an external scorer."""

    score: float = Field(ge=0.0, le=1.0)
    explanation: str = ""


class NullExternalScorer:
    """Scorer used when no external service is configured."""

    name = "none"

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        return None


class HttpExternalScorer:
    """Scorer backed by an HTTP endpoint.

    Request body: ``{"seeker": {...}, "candidate": {...}}``.
    Response body: ``{"score": 0.0-1.0, "explanation": "..."}``.
    """

    name = "http"

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = 8.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize HTTP scorer.

        Args:
            endpoint: URL that receives the scoring request
            api_key: Optional bearer token
            timeout: Per-call timeout in seconds
            session: Optional shared aiohttp session (otherwise one per
                session_scope block, or one per call outside such a block)
        """
        if not endpoint:
            raise ConfigurationError("External scorer endpoint is not configured")
        if timeout <= 0:
            raise ConfigurationError(f"External scorer timeout must be positive, got {timeout}")
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._session = session

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_request(self, seeker: Profile, candidate: Profile) -> dict[str, Any]:
        return {"seeker": seeker.summary(), "candidate": candidate.summary()}

    def _parse_body(self, body: Any) -> Annotation:
        """Validate a response body into an Annotation."""
        try:
            payload = AnnotationPayload.model_validate(body)
        except ValidationError as e:
            raise ExternalScorerUnavailable("returned a malformed response") from e
        return Annotation(score=payload.score, explanation=payload.explanation.strip())

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        """
        Request an annotation for one candidate.

        Returns:
            Annotation, or None if the service is unavailable
        """
        try:
            return await self._request(seeker, candidate)
        except ExternalScorerUnavailable as e:
            logger.warning("External scorer %s for candidate %s", e.reason, candidate.id)
            return None

    @contextlib.asynccontextmanager
    async def session_scope(self) -> AsyncIterator[None]:
        """Share one ClientSession across the calls made inside this block."""
        if self._session is not None or _run_session.get() is not None:
            yield
            return
        async with aiohttp.ClientSession() as session:
            token = _run_session.set(session)
            try:
                yield
            finally:
                _run_session.reset(token)

    async def _request(self, seeker: Profile, candidate: Profile) -> Annotation:
        payload = self._build_request(seeker, candidate)
        session = self._session if self._session is not None else _run_session.get()
        try:
            if session is not None:
                return await self._post(session, payload)
            async with aiohttp.ClientSession() as session:
                return await self._post(session, payload)
        except asyncio.TimeoutError as e:
            raise ExternalScorerUnavailable("timed out") from e
        except aiohttp.ClientError as e:
            logger.debug("External scorer transport error: %s", e)
            raise ExternalScorerUnavailable("is unreachable") from e

    async def _post(self, session: aiohttp.ClientSession, payload: dict[str, Any]) -> Annotation:
        async with session.post(
            self.endpoint,
            json=payload,
            headers=self._headers(),
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as resp:
            if not 200 <= resp.status < 300:
                logger.debug("External scorer returned HTTP %d", resp.status)
                raise ExternalScorerUnavailable("rejected the request")
            try:
                body = await resp.json(content_type=None)
            except ValueError as e:
                raise ExternalScorerUnavailable("returned a malformed response") from e
        return self._parse_body(body)


class ChatCompletionScorer(HttpExternalScorer):
    """Scorer backed by an OpenAI-compatible chat completions endpoint.

    The model is asked for a JSON object with the same ``score`` and
    ``explanation`` fields as the plain HTTP scorer.
    """

    name = "chat"

    SYSTEM_PROMPT = (
        "You evaluate volleyball transfer matches between players, coaches and clubs. "
        "Reply with a JSON object: {\"score\": number between 0 and 1, "
        "\"explanation\": one or two sentences}. Return ONLY the JSON object."
    )

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 8.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(endpoint, api_key=api_key, timeout=timeout, session=session)
        if not model:
            raise ConfigurationError("Chat completion scorer requires a model name")
        self.model = model

    def _build_request(self, seeker: Profile, candidate: Profile) -> dict[str, Any]:
        prompt = (
            "SEEKER PROFILE:\n"
            f"{json.dumps(seeker.summary(), ensure_ascii=False)}\n\n"
            "CANDIDATE PROFILE:\n"
            f"{json.dumps(candidate.summary(), ensure_ascii=False)}\n\n"
            "How good a transfer match is the candidate for the seeker?"
        )
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0,
        }

    def _parse_body(self, body: Any) -> Annotation:
        try:
            content = body["choices"][0]["message"]["content"]
            data = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ExternalScorerUnavailable("returned a malformed response") from e
        return super()._parse_body(data)


def get_external_scorer(
    kind: str = "none",
    endpoint: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    timeout: float = 8.0,
) -> ExternalScorer:
    """Factory: create an external scorer from configuration.

    Args:
        kind: One of 'none', 'http', 'chat'
        endpoint: Scorer URL (required for 'http' and 'chat')
        api_key: Optional bearer token
        model: Model name (required for 'chat')
        timeout: Per-call timeout in seconds

    Raises:
        ConfigurationError: On an unknown kind or missing settings
    """
    kind = (kind or "none").strip().lower()
    if kind == "none":
        return NullExternalScorer()
    if kind == "http":
        return HttpExternalScorer(endpoint or "", api_key=api_key, timeout=timeout)
    if kind == "chat":
        return ChatCompletionScorer(endpoint or "", model=model or "", api_key=api_key, timeout=timeout)
    raise ConfigurationError(f"Unknown external scorer kind: {kind!r}")


def _valid_annotation(annotation: Any) -> bool:
    return (
        isinstance(annotation, Annotation)
        and isinstance(annotation.score, (int, float))
        and math.isfinite(annotation.score)
        and 0.0 <= annotation.score <= 1.0
    )


class AnnotationRunner:
    """Runs external annotation for a set of candidates.

    One task per distinct candidate, at most ``fan_out`` in flight, each
    guarded by ``call_timeout``. After ``deadline`` seconds any unfinished
    task is cancelled on its own and the finished annotations are returned.
    """

    def __init__(
        self,
        scorer: ExternalScorer,
        fan_out: int = 4,
        call_timeout: float = 8.0,
        deadline: float = 20.0,
    ):
        if fan_out < 1:
            raise ConfigurationError(f"External fan-out must be at least 1, got {fan_out}")
        if call_timeout <= 0:
            raise ConfigurationError(f"External call timeout must be positive, got {call_timeout}")
        if deadline <= 0:
            raise ConfigurationError(f"Request deadline must be positive, got {deadline}")
        self.scorer = scorer
        self.fan_out = fan_out
        self.call_timeout = call_timeout
        self.deadline = deadline

    async def _annotate_one(
        self,
        semaphore: asyncio.Semaphore,
        seeker: Profile,
        candidate: Profile,
    ) -> Optional[Annotation]:
        async with semaphore:
            try:
                annotation = await asyncio.wait_for(
                    self.scorer.annotate(seeker, candidate),
                    timeout=self.call_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("External scorer timed out for candidate %s", candidate.id)
                return None
            except Exception as e:
                logger.warning("External scorer unavailable for candidate %s", candidate.id)
                logger.debug("External scorer failure: %s", e, exc_info=True)
                return None

        if annotation is not None and not _valid_annotation(annotation):
            logger.warning("Discarding invalid external annotation for candidate %s", candidate.id)
            return None
        return annotation

    async def run(self, seeker: Profile, candidates: Iterable[Profile]) -> dict[str, Annotation]:
        """
        Annotate candidates concurrently.

        Args:
            seeker: Seeker profile
            candidates: Candidate profiles (duplicates by id are called once)

        Returns:
            Mapping of candidate id to annotation, for annotations that arrived
        """
        unique: dict[str, Profile] = {}
        for candidate in candidates:
            unique.setdefault(candidate.id, candidate)
        if not unique:
            return {}

        session_scope = getattr(self.scorer, "session_scope", None)
        scope = session_scope() if session_scope is not None else contextlib.nullcontext()

        async with scope:
            semaphore = asyncio.Semaphore(self.fan_out)
            tasks = {
                asyncio.create_task(self._annotate_one(semaphore, seeker, candidate)): candidate_id
                for candidate_id, candidate in unique.items()
            }

            done, pending = await asyncio.wait(tasks, timeout=self.deadline)
            if pending:
                logger.warning(
                    "Request deadline of %.1fs reached, %d external call(s) abandoned",
                    self.deadline, len(pending),
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        annotations = {}
        for task in done:
            annotation = task.result()
            if annotation is not None:
                annotations[tasks[task]] = annotation

        logger.info("External annotations: %d/%d candidates", len(annotations), len(unique))
        return annotations


async def annotate_top_candidates(
    scorer: ExternalScorer,
    seeker: Profile,
    candidates: Iterable[Profile],
    fan_out: int = 4,
    call_timeout: float = 8.0,
    deadline: float = 20.0,
) -> dict[str, Annotation]:
    """Annotate candidates with a one-off AnnotationRunner."""
    runner = AnnotationRunner(scorer, fan_out=fan_out, call_timeout=call_timeout, deadline=deadline)
    return await runner.run(seeker, candidates)
