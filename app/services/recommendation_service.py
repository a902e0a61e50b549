"""
RecommendationService: the detached job behind /initialize.

POSTs the normalized conversation to the automation webhook, turns whatever
comes back into a RecommendationSet and records the outcome in the
ResultCache. Nobody awaits this job, so nothing raised here may escape
run(): every failure becomes a Failed cache entry that the next poll renders.
"""

import json
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

import requests
from pydantic import ValidationError
from requests.auth import HTTPBasicAuth

from app.exceptions import JobDispatchError, MalformedDownstreamResponse
from app.models.canvas_models import ContextAnalysis, RecommendationJobPayload, RecommendationSet, Reply
from app.services.result_cache import ResultCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
DEFAULT_CONFIDENCE = 0.95
DEFAULT_TONE = "professional"
DEFAULT_CONTEXT = ContextAnalysis(sentiment="positive", urgency="medium", category="support")


def split_credentials(url: str) -> Tuple[str, Optional[HTTPBasicAuth]]:
    """
    Removes user:pass@ from the webhook URL.
    Returns the clean URL and the matching Basic auth (None when absent).
    """
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url, None

    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parts.port:
        host = f"{host}:{parts.port}"

    clean_url = urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))
    auth = HTTPBasicAuth(unquote(parts.username or ""), unquote(parts.password or ""))
    return clean_url, auth


# ===================================================================
#  RESPONSE ADAPTERS
# ===================================================================

def _from_canonical(body: Any) -> Optional[RecommendationSet]:
    """{recommended_replies, context_analysis?}, optionally wrapped in a one-item list."""
    if isinstance(body, list) and len(body) == 1 and isinstance(body[0], dict):
        body = body[0]
    if not isinstance(body, dict) or "recommended_replies" not in body:
        return None

    raw_replies = body.get("recommended_replies")
    if isinstance(raw_replies, str):
        raw_replies = [raw_replies]
    elif not isinstance(raw_replies, list):
        raw_replies = []

    replies: List[Reply] = []
    for index, item in enumerate(raw_replies, start=1):
        if isinstance(item, str):
            item = {"text": item}
        if not isinstance(item, dict) or not item.get("text"):
            continue
        replies.append(Reply(
            id=str(item.get("id") or f"reply_{index}"),
            text=str(item["text"]),
            confidence=item.get("confidence"),
            tone=item.get("tone"),
        ))

    context = body.get("context_analysis")
    return RecommendationSet(
        recommended_replies=replies,
        context_analysis=ContextAnalysis.model_validate(context) if isinstance(context, dict) else None,
    )


def _from_content_blocks(body: Any) -> Optional[RecommendationSet]:
    """
    LLM-provider shape: [{"content": [{"type": "text", "text": "..."}, ...]}, ...].
    Every text block becomes one reply.
    """
    if not isinstance(body, list) or not body:
        return None
    if not all(isinstance(item, dict) and isinstance(item.get("content"), list) for item in body):
        return None

    replies: List[Reply] = []
    for item in body:
        for block in item["content"]:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                replies.append(Reply(
                    id=f"reply_{len(replies) + 1}",
                    text=str(block["text"]),
                    confidence=DEFAULT_CONFIDENCE,
                    tone=DEFAULT_TONE,
                ))

    return RecommendationSet(recommended_replies=replies, context_analysis=DEFAULT_CONTEXT)


# New provider formats are added here; the first adapter that recognises the shape wins.
RESPONSE_ADAPTERS: List[Callable[[Any], Optional[RecommendationSet]]] = [
    _from_canonical,
    _from_content_blocks,
]


def normalize_recommendations(body: Any) -> RecommendationSet:
    for adapter in RESPONSE_ADAPTERS:
        result = adapter(body)
        if result is not None:
            return result
    logger.warning("Unrecognised recommendation response shape (%s), no replies extracted", type(body).__name__)
    return RecommendationSet()


def parse_response_text(text: str) -> Any:
    """Raises MalformedDownstreamResponse for empty or non-JSON bodies."""
    if not text or not text.strip():
        raise MalformedDownstreamResponse("Empty response from recommendation webhook")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedDownstreamResponse(f"Invalid JSON in recommendation webhook response: {e}") from e


# ===================================================================
#  JOB
# ===================================================================

@dataclass
class RecommendationJob:
    """Handle for one job; the router submits it once the response is sent."""
    service: "RecommendationService"
    payload: RecommendationJobPayload
    conversation_id: str
    generation: Optional[int] = None

    def run(self) -> None:
        self.service.run(self.payload, self.conversation_id, self.generation)

    def submit(self) -> Future:
        return self.service.submit(self)


class RecommendationService:

    def __init__(self, webhook_url: Optional[str], cache: ResultCache,
                 timeout: float = 30.0, session: Optional[requests.Session] = None,
                 executor: Optional[Executor] = None, max_workers: int = DEFAULT_MAX_WORKERS):
        self.webhook_url = webhook_url
        self.cache = cache
        self.timeout = timeout
        self._session = session or requests.Session()
        # Separate from the server threadpool that runs the routes
        self.executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="recommendation")

    def create_job(self, payload: RecommendationJobPayload, conversation_id: str) -> RecommendationJob:
        generation = self.cache.begin(conversation_id)
        return RecommendationJob(self, payload, conversation_id, generation)

    def submit(self, job: RecommendationJob) -> Future:
        logger.info("Submitting recommendation job for %s", job.conversation_id)
        return self.executor.submit(job.run)

    def shutdown(self, wait: bool = False) -> None:
        self.executor.shutdown(wait=wait)

    def run(self, payload: RecommendationJobPayload, conversation_id: str,
            generation: Optional[int] = None) -> None:
        """Runs one job to completion. Never raises."""
        logger.info("Recommendation job started for conversation %s (generation %s)", conversation_id, generation)
        try:
            recommendations = self._fetch_recommendations(payload)
        except (JobDispatchError, MalformedDownstreamResponse) as e:
            logger.error("Recommendation job failed for %s: %s", conversation_id, e.message)
            self.cache.store_failed(conversation_id, e.message, generation)
            return
        except Exception as e:
            logger.exception("Unexpected error in recommendation job for %s", conversation_id)
            self.cache.store_failed(conversation_id, f"Unexpected error: {e}", generation)
            return

        self.cache.store_ready(conversation_id, recommendations, generation)
        logger.info("Recommendation job finished for %s: %d replies", conversation_id, len(recommendations.recommended_replies))

    def _fetch_recommendations(self, payload: RecommendationJobPayload) -> RecommendationSet:
        if not self.webhook_url:
            raise JobDispatchError("Recommendation webhook URL is not configured")

        url, auth = split_credentials(self.webhook_url)
        logger.info("POST recommendation webhook %s (auth: %s)", url, "basic" if auth else "none")

        try:
            response = self._session.post(
                url,
                json=payload.to_wire(),
                auth=auth,
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise JobDispatchError(f"Recommendation webhook timed out after {self.timeout:g}s") from e
        except requests.RequestException as e:
            raise JobDispatchError(f"Could not reach recommendation webhook: {e}") from e

        text = response.text or ""
        if not response.ok:
            raise JobDispatchError(
                f"Recommendation webhook responded with status {response.status_code}: {text[:300]}",
                status_code=response.status_code,
            )

        body = parse_response_text(text)
        try:
            return normalize_recommendations(body)
        except ValidationError as e:
            raise MalformedDownstreamResponse(f"Unexpected recommendation format: {e.error_count()} invalid field(s)") from e
