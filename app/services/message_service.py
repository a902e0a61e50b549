"""
MessageService: flattens an Intercom conversation into plain-text message records
plus a small summary block for the recommendation payload.
"""

import html
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from app.models.canvas_models import ConversationSummary, MessageRecord

logger = logging.getLogger(__name__)

_BREAK_RE = re.compile(r'<\s*br\s*/?\s*>|<\s*/\s*(?:p|div|li|h[1-6])\s*>', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]*>')
_BLANK_LINES_RE = re.compile(r'\n\s*\n+')

_STATE_LABELS = {
    'open': 'Open',
    'closed': 'Closed',
    'snoozed': 'Snoozed',
    # Legacy user-API states
    'LIVE': 'LIVE',
    'END_FAIL': 'FAILED',
    'ONGOING': 'ONGOING',
    'END_SUCCESS': 'PASSED',
}


def strip_html(value: Any) -> str:
    """Simple tag removal. Tolerates malformed markup and never raises."""
    if value is None:
        return ""
    text = str(value)
    text = _BREAK_RE.sub('\n', text)
    text = _TAG_RE.sub('', text)
    text = html.unescape(text)
    text = _BLANK_LINES_RE.sub('\n\n', text)
    return text.strip()


def format_date(value: Any) -> str:
    """DD/MM/YYYY for unix timestamps or ISO strings; 'N/A' when empty or unparseable."""
    if value in (None, ''):
        return 'N/A'
    try:
        if isinstance(value, (int, float)):
            date = datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            date = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, OverflowError, OSError):
        return 'N/A'
    return date.strftime('%d/%m/%Y')


def translate_state(state: Optional[str]) -> str:
    if not state:
        return 'Unknown'
    return _STATE_LABELS.get(state, state)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def _record(item: dict, message_type: str) -> MessageRecord:
    author = item.get('author')
    if not isinstance(author, dict):
        author = {}
    return MessageRecord(
        id=_as_str(item.get('id')),
        type=message_type,
        author_type=_as_str(author.get('type')),
        author_email=_as_str(author.get('email')),
        author_name=_as_str(author.get('name')),
        text=strip_html(item.get('body')),
        timestamp=_as_int(item.get('created_at')),
    )


def normalize_messages(conversation: dict) -> List[MessageRecord]:
    """
    Source message first (if present), then every conversation part in the
    order the platform delivered them.
    """
    if not isinstance(conversation, dict):
        return []

    messages: List[MessageRecord] = []

    source = conversation.get('source')
    if isinstance(source, dict) and (source.get('body') or source.get('id')):
        record = _record(source, 'initial')
        # The source carries no created_at of its own
        if record.timestamp is None:
            record.timestamp = _as_int(conversation.get('created_at'))
        messages.append(record)

    container = conversation.get('conversation_parts')
    parts = container.get('conversation_parts') if isinstance(container, dict) else None
    if not isinstance(parts, list):
        parts = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        messages.append(_record(part, _as_str(part.get('part_type')) or 'comment'))

    logger.info("Normalized %d messages", len(messages))
    return messages


def summarize_conversation(conversation: dict) -> ConversationSummary:
    conversation = conversation if isinstance(conversation, dict) else {}
    return ConversationSummary(
        id=_as_str(conversation.get('id')),
        state=_as_str(conversation.get('state')),
        title=strip_html(conversation.get('title')) or None,
        priority=_as_str(conversation.get('priority')),
        created_at=_as_int(conversation.get('created_at')),
        updated_at=_as_int(conversation.get('updated_at')),
        waiting_since=_as_int(conversation.get('waiting_since')),
    )
