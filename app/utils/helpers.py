from typing import Dict, Any, Optional

from app.models.canvas_models import ConversationRef

UNKNOWN_EMAIL = "unknown@example.com"

# Order matters: contact-level fields, then nested context, then generic fallbacks.
EMAIL_PATHS = [
    ['contact', 'email'],
    ['context', 'contact', 'email'],
    ['context', 'customer', 'email'],
    ['context', 'user', 'email'],
    ['customer', 'email'],
    ['user', 'email'],
    ['input_values', 'email'],
]

CONVERSATION_ID_PATHS = [
    ['conversation', 'id'],
    ['context', 'conversation_id'],
    ['context', 'conversation', 'id'],
    ['conversation_id'],
    ['input_values', 'conversation_id'],
]

AGENT_EMAIL_PATHS = [
    ['admin', 'email'],
    ['context', 'admin', 'email'],
]

WORKSPACE_ID_PATHS = [
    ['workspace_id'],
    ['context', 'workspace_id'],
]


def get_nested_value(data: Dict[str, Any], keys: list) -> Any:
    """Walks the keys into nested dicts; None as soon as one is missing."""
    current = data
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None
    return current


def get_first_value(data: Dict[str, Any], paths: list) -> Any:
    """Returns the first non-empty value found along the candidate paths."""
    for path in paths:
        value = get_nested_value(data, path)
        if value is not None and value != "":
            return value
    return None


def get_first_string(data: Dict[str, Any], paths: list) -> Optional[str]:
    """Like get_first_value, but skips anything that is not a non-blank string."""
    for path in paths:
        value = get_nested_value(data, path)
        if isinstance(value, str) and value.strip():
            return value
    return None


def extract_email(body: Dict[str, Any]) -> str:
    return get_first_string(body, EMAIL_PATHS) or UNKNOWN_EMAIL


def extract_conversation_id(body: Dict[str, Any]) -> Optional[str]:
    value = get_first_value(body, CONVERSATION_ID_PATHS)
    # Intercom sends numeric ids in some payloads
    return str(value) if value is not None else None


def extract_agent_email(body: Dict[str, Any]) -> Optional[str]:
    return get_first_string(body, AGENT_EMAIL_PATHS)


def extract_workspace_id(body: Dict[str, Any]) -> Optional[str]:
    value = get_first_value(body, WORKSPACE_ID_PATHS)
    return str(value) if value is not None else None


def build_conversation_ref(body: Dict[str, Any]) -> ConversationRef:
    """Derives the conversation identity from any Canvas payload shape."""
    if not isinstance(body, dict):
        body = {}
    return ConversationRef(
        conversation_id=extract_conversation_id(body),
        customer_email=extract_email(body),
        agent_email=extract_agent_email(body),
        workspace_id=extract_workspace_id(body),
    )
