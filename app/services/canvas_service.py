"""
CanvasService: request dispatcher for the Canvas Kit lifecycle calls.

/initialize answers right away with a loading view and hands back a
RecommendationJob for the router to schedule after the response is sent.
/submit polls the ResultCache (or finalises a selected reply) and renders
whatever state the job has reached.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from app.config import Settings
from app.exceptions import MissingConfiguration, MissingContext, RelayError, RemoteFetchError, SignatureInvalid
from app.models.canvas_models import ConversationRef, JobMetadata, RecommendationJobPayload
from app.services import canvas_builder as views
from app.services.customer_directory import CustomerDirectory
from app.services.intercom_service import IntercomService
from app.services.message_service import normalize_messages, summarize_conversation
from app.services.recommendation_service import RecommendationJob, RecommendationService
from app.services.result_cache import ResultCache
from app.services.signature_service import verify_signature
from app.utils.helpers import build_conversation_ref

logger = logging.getLogger(__name__)

POLL_IDS = {views.REFRESH_ID, views.REGENERATE_ID, views.BACK_ID}


@dataclass
class CanvasReply:
    """What a route sends back: the Canvas body, its status and an optional job to run afterwards."""
    components: list
    status_code: int = 200
    job: Optional[RecommendationJob] = None

    @property
    def body(self) -> dict:
        return views.canvas_response(self.components)


class CanvasService:
    """Orchestrates the Canvas flows, decoupled from HTTP."""

    def __init__(self, settings: Settings, cache: ResultCache, intercom: IntercomService,
                 recommendations: RecommendationService, directory: CustomerDirectory):
        self.settings = settings
        self.cache = cache
        self.intercom = intercom
        self.recommendations = recommendations
        self.directory = directory

    # =================================================================
    #  /initialize
    # =================================================================

    def initialize(self, body: Dict[str, Any], raw_body: bytes = b"",
                   signature: Optional[str] = None) -> CanvasReply:
        body = body if isinstance(body, dict) else {}

        try:
            if not verify_signature(raw_body or body, signature, self.settings.intercom_client_secret, parsed=body):
                raise SignatureInvalid()
        except SignatureInvalid as e:
            logger.warning("Rejected /initialize: %s", e.message)
            return CanvasReply(views.rejected_view(), status_code=401)

        try:
            ref = build_conversation_ref(body)
        except Exception as e:
            logger.exception("Could not read the conversation context on /initialize")
            return CanvasReply(views.error_view(str(e) or e.__class__.__name__))

        logger.info("Initialize: conversation=%s customer=%s agent=%s", ref.conversation_id, ref.customer_email, ref.agent_email)
        return self._dispatch(ref)

    def _dispatch(self, ref: ConversationRef) -> CanvasReply:
        try:
            if not ref.conversation_id:
                raise MissingContext()
            missing = self.settings.missing_for_initialize()
            if missing:
                raise MissingConfiguration(missing)

            payload = self._build_payload(ref)
        except MissingContext:
            logger.info("No conversation id in payload, nothing to recommend")
            return CanvasReply(views.message_view(
                "ℹ️ No conversation",
                "Open this app from a conversation to get AI reply suggestions.",
            ))
        except MissingConfiguration as e:
            logger.error(e.message)
            return CanvasReply(views.message_view(
                "⚠️ Configuration Error",
                f"The relay is not fully configured. Please set: {', '.join(e.missing)}.",
            ))
        except RemoteFetchError as e:
            return CanvasReply(views.error_view(e.message))
        except Exception as e:
            logger.exception("Unexpected error preparing recommendations for %s", ref.conversation_id)
            return CanvasReply(views.error_view(str(e) or e.__class__.__name__))

        job = self.recommendations.create_job(payload, ref.conversation_id)
        logger.info("Recommendation job queued for %s (%d messages)", ref.conversation_id, payload.metadata.total_messages)
        return CanvasReply(views.loading_view(ref, payload.metadata.total_messages, payload.conversation), job=job)

    def _build_payload(self, ref: ConversationRef) -> RecommendationJobPayload:
        conversation = self.intercom.get_conversation(ref.conversation_id)
        messages = normalize_messages(conversation)
        summary = summarize_conversation(conversation)
        profile = self.directory.find_by_email(ref.customer_email)

        return RecommendationJobPayload(
            conversation_id=ref.conversation_id,
            customer_email=ref.customer_email,
            agent_email=ref.agent_email,
            workspace_id=ref.workspace_id,
            conversation=summary,
            messages=messages,
            metadata=JobMetadata(total_messages=len(messages), waiting_since=summary.waiting_since),
            customer_profile=profile,
        )

    # =================================================================
    #  /submit
    # =================================================================

    def submit(self, body: Dict[str, Any]) -> CanvasReply:
        body = body if isinstance(body, dict) else {}
        component_id = str(body.get("component_id") or "")
        input_values = body.get("input_values") if isinstance(body.get("input_values"), dict) else {}

        try:
            ref = build_conversation_ref(body)
            logger.info("Submit: component=%s conversation=%s", component_id, ref.conversation_id)

            if component_id.startswith(views.USE_REPLY_PREFIX):
                index = component_id[len(views.USE_REPLY_PREFIX):]
                selected = input_values.get(f"{views.REPLY_TEXT_PREFIX}{index}")
                if isinstance(selected, str) and selected.strip():
                    logger.info("Reply %s selected for %s", index, ref.conversation_id)
                    return CanvasReply(views.reply_selected_view(selected))
                logger.info("Reply %s selected without text, re-rendering suggestions", index)
                return self._poll(ref)

            if component_id in POLL_IDS:
                return self._poll(ref)

            if component_id == views.TRY_AGAIN_ID:
                return self._dispatch(ref)
        except RelayError as e:
            return CanvasReply(views.error_view(e.message))
        except Exception as e:
            logger.exception("Unexpected error handling submit %s", component_id)
            return CanvasReply(views.error_view(str(e) or e.__class__.__name__))

        logger.info("Unhandled component id '%s'", component_id)
        return CanvasReply(views.message_view("✅ Action received", "Your request has been processed."))

    def _poll(self, ref: ConversationRef) -> CanvasReply:
        if not ref.conversation_id:
            return CanvasReply(views.message_view(
                "ℹ️ No conversation",
                "Open this app from a conversation to get AI reply suggestions.",
            ))

        entry = self.cache.get(ref.conversation_id)
        if entry is None:
            logger.info("Poll %s: still processing", ref.conversation_id)
            return CanvasReply(views.still_processing_view(ref.customer_email))

        if not entry.is_ready:
            logger.info("Poll %s: failed (%s)", ref.conversation_id, entry.error)
            return CanvasReply(views.error_view(entry.error or "Unknown error"))

        logger.info("Poll %s: %d replies ready", ref.conversation_id, len(entry.recommendations.recommended_replies))
        return CanvasReply(views.ready_view(
            entry.recommendations,
            ref.customer_email,
            dashboard_url=self.directory.dashboard_url(ref.customer_email),
        ))

