"""
Canvas component builders.
Every view returns a brand-new list of plain dicts; nothing is cached or shared
between responses, so the same input always renders the same tree.
"""

from typing import List, Optional

from app.models.canvas_models import ContextAnalysis, ConversationRef, ConversationSummary, RecommendationSet, Reply
from app.services.message_service import format_date, translate_state

# --- Component ids (submit routing) ---
REFRESH_ID = "refresh_now"
REGENERATE_ID = "regenerate"
BACK_ID = "back_to_replies"
TRY_AGAIN_ID = "try_again"
USE_REPLY_PREFIX = "use_reply_"
REPLY_TEXT_PREFIX = "reply_text_"
FINAL_REPLY_ID = "final_reply"


# ===================================================================
#  PRIMITIVES
# ===================================================================

def text(value: str, style: str = "paragraph") -> dict:
    return {"type": "text", "text": value, "style": style}


def divider() -> dict:
    return {"type": "divider"}


def spacer(size: str = "s") -> dict:
    return {"type": "spacer", "size": size}


def button(component_id: str, label: str, style: str = "primary") -> dict:
    return {
        "type": "button",
        "id": component_id,
        "label": label,
        "style": style,
        "action": {"type": "submit"},
    }


def url_button(component_id: str, label: str, url: str, style: str = "secondary") -> dict:
    return {
        "type": "button",
        "id": component_id,
        "label": label,
        "style": style,
        "action": {"type": "url", "url": url},
    }


def textarea(component_id: str, label: str, value: str, placeholder: str = "") -> dict:
    return {
        "type": "textarea",
        "id": component_id,
        "label": label,
        "value": value,
        "placeholder": placeholder,
    }


def canvas_response(components: List[dict]) -> dict:
    """Wraps components in the Canvas Kit envelope."""
    return {"canvas": {"content": {"components": components}}}


def format_confidence(confidence: Optional[float]) -> Optional[str]:
    if confidence is None:
        return None
    return f"{round(confidence * 100)}%"


# ===================================================================
#  VIEWS
# ===================================================================

def message_view(title: str, body: str) -> List[dict]:
    """Informational one-off message (missing context, configuration, unhandled action)."""
    return [text(f"**{title}**\n\n{body}")]


def rejected_view() -> List[dict]:
    return message_view("⛔ Unauthorized", "The request signature could not be verified.")


def loading_view(ref: ConversationRef, message_count: int,
                 summary: Optional[ConversationSummary] = None) -> List[dict]:
    details = f"**Customer:** {ref.customer_email}\n**Messages analyzed:** {message_count}"
    if summary is not None:
        details += f"\n**Status:** {translate_state(summary.state)} · since {format_date(summary.created_at)}"
    return [
        text("🤖 AI Reply Suggestions", "header"),
        text("⏳ Generating reply suggestions… this usually takes a few seconds."),
        text(details, "muted"),
        spacer("s"),
        button(REFRESH_ID, "🔄 Check status"),
    ]


def still_processing_view(customer_email: str) -> List[dict]:
    return [
        text("🤖 AI Reply Suggestions", "header"),
        text("⏳ Still processing… the suggestions are not ready yet."),
        text(f"**Customer:** {customer_email}", "muted"),
        spacer("s"),
        button(REFRESH_ID, "🔄 Check status"),
    ]


def _reply_label(index: int, reply: Reply) -> str:
    details = [f"**Reply {index + 1}**"]
    confidence = format_confidence(reply.confidence)
    if confidence:
        details.append(f"{confidence} confidence")
    if reply.tone:
        details.append(reply.tone)
    return " · ".join(details)


def _context_block(context: ContextAnalysis) -> Optional[dict]:
    lines = []
    if context.sentiment:
        lines.append(f"**Sentiment:** {context.sentiment}")
    if context.urgency:
        lines.append(f"**Urgency:** {context.urgency}")
    if context.category:
        lines.append(f"**Category:** {context.category}")
    if not lines:
        return None
    return text("📊 **Context analysis**\n" + "\n".join(lines), "muted")


def ready_view(recommendations: RecommendationSet, customer_email: str,
               dashboard_url: Optional[str] = None) -> List[dict]:
    replies = recommendations.recommended_replies
    if not replies:
        return [
            text("⚠️ **No suggestions available**\n\nThe assistant did not return any reply suggestions for this conversation."),
            button(TRY_AGAIN_ID, "🔁 Try again"),
        ]

    components = [
        text("🤖 AI Reply Suggestions", "header"),
        text(f"**Customer:** {customer_email}", "muted"),
    ]

    if recommendations.context_analysis:
        block = _context_block(recommendations.context_analysis)
        if block:
            components.append(block)

    components.append(divider())

    for index, reply in enumerate(replies):
        if index > 0:
            components.append(divider())
        components.append(text(_reply_label(index, reply)))
        components.append(textarea(f"{REPLY_TEXT_PREFIX}{index}", "Suggested reply", reply.text))
        components.append(button(f"{USE_REPLY_PREFIX}{index}", "✅ Use this reply"))

    components.append(spacer("m"))
    components.append(button(REGENERATE_ID, "🔄 Regenerate", "secondary"))
    if dashboard_url:
        components.append(url_button("view_customer", "👤 View customer", dashboard_url, "link"))
    return components


def error_view(message: str) -> List[dict]:
    return [
        text(f"❌ **Error**\n\nCould not generate reply suggestions: {message}"),
        button(TRY_AGAIN_ID, "🔁 Try again"),
    ]


def reply_selected_view(reply_text: str) -> List[dict]:
    return [
        text("✅ **Reply selected**\n\nCopy the text below into the conversation composer."),
        textarea(FINAL_REPLY_ID, "Final reply", reply_text),
        button(BACK_ID, "⬅️ Back to suggestions", "secondary"),
    ]
