"""
B2Chat Export Records
=====================

Pydantic models for the records returned by the B2Chat export endpoints.

B2Chat names several fields differently from our internal model:
- "name" instead of "fullname"
- "mobile_number" (nested contacts) instead of "mobile"
- "response_at" instead of "responded_at"
- contacts exported without a "contact_id"

Raw payloads must therefore go through the normalize_* helpers before
validation. All models allow extra fields so upstream additions survive.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chatpulse.b2chat.domain.value_objects import RecordParseError
from chatpulse.config import ChatProvider, ChatStatus
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

STATUS_MAP = {
    "BOT_CHATTING": ChatStatus.BOT_CHATTING,
    "OPENED": ChatStatus.OPENED,
    "PICKED_UP": ChatStatus.PICKED_UP,
    "RESPONDED_BY_AGENT": ChatStatus.RESPONDED_BY_AGENT,
    "CLOSED": ChatStatus.CLOSED,
    "COMPLETING_POLL": ChatStatus.COMPLETING_POLL,
    "COMPLETED_POLL": ChatStatus.COMPLETED_POLL,
    "ABANDONED_POLL": ChatStatus.ABANDONED_POLL,
    # Legacy aliases still sent by older accounts
    "OPEN": ChatStatus.PICKED_UP,
    "FINISHED": ChatStatus.CLOSED,
    "PENDING": ChatStatus.OPENED,
}


def _stringify_id(value: Any) -> Any:
    """B2Chat sends ids as either strings or numbers."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def normalize_provider(value: Optional[str]) -> str:
    """Map B2Chat provider names (e.g. WHATSAPPB2CHAT) onto our channels."""
    if not value:
        return ChatProvider.LIVECHAT

    normalized = value.lower()
    if normalized.endswith("b2chat"):
        normalized = normalized[: -len("b2chat")]
    normalized = normalized.strip()

    if "whatsapp" in normalized:
        return ChatProvider.WHATSAPP
    if "facebook" in normalized:
        return ChatProvider.FACEBOOK
    if "telegram" in normalized:
        return ChatProvider.TELEGRAM
    if "bot" in normalized or "api" in normalized:
        return ChatProvider.B2CBOTAPI
    return ChatProvider.LIVECHAT


def normalize_status(value: Optional[str]) -> str:
    """Map a B2Chat status onto one of the eight lifecycle statuses."""
    if not value:
        return ChatStatus.OPENED

    normalized = "_".join(value.upper().split())
    mapped = STATUS_MAP.get(normalized)
    if mapped is None:
        logger.warning(
            "Unknown B2Chat status encountered",
            extra={
                "original_status": value,
                "normalized": normalized,
                "fallback_to": ChatStatus.OPENED,
            }
        )
        return ChatStatus.OPENED
    return mapped


# ========== Schemas ==========

class MessageRecord(BaseModel):
    """A single message inside an exported chat."""
    model_config = ConfigDict(extra="allow")

    created_at: str
    incoming: bool = Field(..., description="True when sent by the customer")
    type: str
    body: str = Field(..., description="Text content or media URL")
    caption: Optional[str] = None
    broadcasted: Optional[bool] = None
    location: Optional[Any] = None

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        lowered = v.lower()
        if lowered in ("text", "image"):
            return lowered
        return "file"


class ContactTag(BaseModel):
    """Tag assigned to a contact; assigned_at is a unix timestamp in seconds."""
    model_config = ConfigDict(extra="allow")

    name: str
    assigned_at: float


class ContactRecord(BaseModel):
    """Contact as exported by /contacts/export, after normalization."""
    model_config = ConfigDict(extra="allow")

    contact_id: Optional[str] = None
    id: Optional[str] = None
    fullname: Optional[str] = None
    name: Optional[str] = None
    mobile: Optional[str] = None
    mobile_number: Optional[str] = None
    phone_number: Optional[str] = None
    landline: Optional[str] = None
    email: Optional[str] = None
    identification: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    company: Optional[str] = None
    merchant_id: Optional[Union[str, int]] = None
    custom_attributes: Optional[Union[Dict[str, Any], List[Any]]] = None
    tags: Optional[List[ContactTag]] = None
    row_index: Optional[int] = None
    created: Optional[str] = Field(None, description="Creation time in B2Chat, e.g. 2020-11-09 19:10:23")
    updated: Optional[str] = Field(None, description="Last update time in B2Chat")

    @field_validator("contact_id", "id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _stringify_id(v)


class ChatRecord(BaseModel):
    """Chat as exported by /chats/export, after normalization."""
    model_config = ConfigDict(extra="allow")

    chat_id: str
    alias: Optional[str] = None
    # Nested objects are kept as raw JSON for later extraction
    agent: Optional[Any] = None
    contact: Optional[Any] = None
    department: Optional[Any] = None
    provider: str = ChatProvider.LIVECHAT
    status: str = ChatStatus.OPENED
    is_agent_available: Optional[bool] = None
    created_at: Optional[str] = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    opened_at: Optional[str] = None
    picked_up_at: Optional[str] = None
    responded_at: Optional[str] = None
    response_at: Optional[str] = None
    closed_at: Optional[str] = None
    duration: Optional[Union[str, float]] = None
    poll_started_at: Optional[str] = None
    poll_completed_at: Optional[str] = None
    poll_abandoned_at: Optional[str] = None
    poll_response: Optional[Any] = None
    messages: Optional[List[MessageRecord]] = None
    tags: Optional[List[str]] = None
    viewer_url: Optional[str] = None

    @field_validator("chat_id", mode="before")
    @classmethod
    def coerce_chat_id(cls, v: Any) -> Any:
        return _stringify_id(v)

    @field_validator("provider", mode="before")
    @classmethod
    def map_provider(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return normalize_provider(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def map_status(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return normalize_status(v)
        return v


# ========== Field normalization ==========

def normalize_contact(raw: Dict[str, Any], index: int) -> Dict[str, Any]:
    """
    Remap a raw exported contact onto ContactRecord field names.

    contact_id is generated from the best available identifier because the
    export endpoint does not return one.
    """
    normalized = dict(raw)
    normalized["contact_id"] = (
        raw.get("contact_id")
        or raw.get("id")
        or raw.get("mobile")
        or raw.get("identification")
        or f"contact_{index}"
    )
    normalized["fullname"] = raw.get("fullname") or raw.get("name") or ""
    return normalized


def normalize_chat(raw: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Remap a raw exported chat (and its nested contact) onto ChatRecord names."""
    normalized = dict(raw)
    normalized["responded_at"] = raw.get("responded_at") or raw.get("response_at")

    contact = raw.get("contact")
    if isinstance(contact, dict):
        normalized["contact"] = {
            **contact,
            "fullname": contact.get("fullname") or contact.get("name"),
            "mobile": contact.get("mobile") or contact.get("mobile_number"),
        }
    elif not contact:
        normalized["contact"] = None
    return normalized


def parse_records(
    raw_items: List[Any],
    model: Type[RecordT],
    normalizer: Callable[[Dict[str, Any], int], Dict[str, Any]],
) -> Tuple[List[RecordT], List[RecordParseError]]:
    """
    Normalize and validate every raw item independently.

    Returns the valid records in source order and one RecordParseError per
    rejected item; a bad item never prevents the others from parsing.
    """
    records: List[RecordT] = []
    errors: List[RecordParseError] = []

    for index, raw in enumerate(raw_items):
        try:
            if not isinstance(raw, dict):
                raise TypeError(f"expected an object, got {type(raw).__name__}")
            records.append(model.model_validate(normalizer(raw, index)))
        except (ValidationError, TypeError, ValueError) as e:
            if isinstance(e, ValidationError):
                error_msg = e.json(include_url=False)
            else:
                error_msg = str(e)
            logger.error(
                f"Failed to parse individual {model.__name__}",
                extra={"index": index, "record": raw, "error": error_msg}
            )
            errors.append(RecordParseError(index=index, raw=raw, error=error_msg))

    return records, errors
