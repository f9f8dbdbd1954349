"""Change request types - domain types for the content moderation workflow."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Union

from ..errors import ValidationError


class RequestStatus(str, Enum):
    """Status of a change request through the approval workflow."""
    PENDING = "pending"
    MORE_INFO_NEEDED = "more_info_needed"
    APPROVED = "approved"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self in (RequestStatus.APPROVED, RequestStatus.DENIED)


OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.MORE_INFO_NEEDED)


class RequestType(str, Enum):
    """Kind of content edit a change request proposes."""
    DESCRIPTION = "DESCRIPTION"
    COLUMN_DESCRIPTION = "COLUMN_DESCRIPTION"
    TAG_ADD = "TAG_ADD"
    TAG_REMOVE = "TAG_REMOVE"
    ATTRIBUTE_CREATE = "ATTRIBUTE_CREATE"
    ATTRIBUTE_EDIT = "ATTRIBUTE_EDIT"
    ENUMERATION_ADD = "ENUMERATION_ADD"
    ENUMERATION_EDIT = "ENUMERATION_EDIT"


class RequestFamily(str, Enum):
    """Groups of request types shown together in review queues."""
    CONTENT = "content"
    GLOSSARY = "glossary"

    @property
    def request_types(self) -> frozenset[RequestType]:
        return CONTENT_TYPES if self is RequestFamily.CONTENT else GLOSSARY_TYPES


# Table-scoped edits: the target is a table or column
CONTENT_TYPES = frozenset({
    RequestType.DESCRIPTION,
    RequestType.COLUMN_DESCRIPTION,
    RequestType.TAG_ADD,
    RequestType.TAG_REMOVE,
})

# Business glossary edits: the target is an attribute name
GLOSSARY_TYPES = frozenset({
    RequestType.ATTRIBUTE_CREATE,
    RequestType.ATTRIBUTE_EDIT,
    RequestType.ENUMERATION_ADD,
    RequestType.ENUMERATION_EDIT,
})


def parse_request_type(value: str) -> RequestType:
    try:
        return RequestType(value)
    except ValueError:
        valid = ", ".join(t.value for t in RequestType)
        raise ValidationError(f"Unknown request type '{value}'. Valid types: {valid}") from None


# =============================================================================
# Proposed change payloads (one per request type)
# =============================================================================

def _require_text(data: dict[str, Any], key: str, request_type: RequestType) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{request_type.value} requires a non-empty '{key}'")
    return value.strip()


def _optional_text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{key}' must be an integer")
    return value


@dataclass(frozen=True, slots=True)
class DescriptionChange:
    description: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DescriptionChange:
        return cls(description=_require_text(data, "description", RequestType.DESCRIPTION))


@dataclass(frozen=True, slots=True)
class ColumnDescriptionChange:
    description: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnDescriptionChange:
        return cls(description=_require_text(data, "description", RequestType.COLUMN_DESCRIPTION))


@dataclass(frozen=True, slots=True)
class TagAddChange:
    tag_name: str
    tag_value: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TagAddChange:
        return cls(
            tag_name=_require_text(data, "tag_name", RequestType.TAG_ADD),
            tag_value=_optional_text(data, "tag_value"),
        )


@dataclass(frozen=True, slots=True)
class TagRemoveChange:
    tag_name: str
    tag_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TagRemoveChange:
        return cls(
            tag_name=_require_text(data, "tag_name", RequestType.TAG_REMOVE),
            tag_id=_optional_text(data, "tag_id"),
        )


@dataclass(frozen=True, slots=True)
class EnumerationSpec:
    """An enumeration value proposed together with a new attribute."""
    value_code: str
    value_description: str | None = None
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class AttributeCreateChange:
    attribute_name: str
    display_name: str
    description: str | None = None
    enumerations: tuple[EnumerationSpec, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributeCreateChange:
        rtype = RequestType.ATTRIBUTE_CREATE
        raw_enums = data.get("enumerations") or []
        if not isinstance(raw_enums, list):
            raise ValidationError("'enumerations' must be a list")

        enumerations = []
        codes: set[str] = set()
        for position, item in enumerate(raw_enums, start=1):
            if not isinstance(item, dict):
                raise ValidationError("Each enumeration must be an object")
            code = _require_text(item, "value_code", rtype)
            if code in codes:
                raise ValidationError(f"Duplicate enumeration value_code '{code}'")
            codes.add(code)
            sort_order = _optional_int(item, "sort_order")
            enumerations.append(EnumerationSpec(
                value_code=code,
                value_description=_optional_text(item, "value_description"),
                sort_order=position if sort_order is None else sort_order,
            ))

        return cls(
            attribute_name=_require_text(data, "attribute_name", rtype),
            display_name=_require_text(data, "display_name", rtype),
            description=_optional_text(data, "description"),
            enumerations=tuple(enumerations),
        )


@dataclass(frozen=True, slots=True)
class AttributeEditChange:
    display_name: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AttributeEditChange:
        change = cls(
            display_name=_optional_text(data, "display_name"),
            description=_optional_text(data, "description"),
        )
        if change.display_name is None and change.description is None:
            raise ValidationError("ATTRIBUTE_EDIT requires 'display_name' or 'description'")
        return change


@dataclass(frozen=True, slots=True)
class EnumerationAddChange:
    value_code: str
    value_description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnumerationAddChange:
        return cls(
            value_code=_require_text(data, "value_code", RequestType.ENUMERATION_ADD),
            value_description=_optional_text(data, "value_description"),
        )


@dataclass(frozen=True, slots=True)
class EnumerationEditChange:
    enumeration_id: str
    value_code: str | None = None
    value_description: str | None = None
    sort_order: int | None = None
    is_active: bool | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnumerationEditChange:
        is_active = data.get("is_active")
        if is_active is not None and not isinstance(is_active, bool):
            raise ValidationError("'is_active' must be a boolean")
        change = cls(
            enumeration_id=_require_text(data, "enumeration_id", RequestType.ENUMERATION_EDIT),
            value_code=_optional_text(data, "value_code"),
            value_description=_optional_text(data, "value_description"),
            sort_order=_optional_int(data, "sort_order"),
            is_active=is_active,
        )
        if all(
            v is None
            for v in (change.value_code, change.value_description, change.sort_order, change.is_active)
        ):
            raise ValidationError("ENUMERATION_EDIT must change at least one field")
        return change


ProposedChange = Union[
    DescriptionChange,
    ColumnDescriptionChange,
    TagAddChange,
    TagRemoveChange,
    AttributeCreateChange,
    AttributeEditChange,
    EnumerationAddChange,
    EnumerationEditChange,
]

PAYLOAD_TYPES: dict[RequestType, type] = {
    RequestType.DESCRIPTION: DescriptionChange,
    RequestType.COLUMN_DESCRIPTION: ColumnDescriptionChange,
    RequestType.TAG_ADD: TagAddChange,
    RequestType.TAG_REMOVE: TagRemoveChange,
    RequestType.ATTRIBUTE_CREATE: AttributeCreateChange,
    RequestType.ATTRIBUTE_EDIT: AttributeEditChange,
    RequestType.ENUMERATION_ADD: EnumerationAddChange,
    RequestType.ENUMERATION_EDIT: EnumerationEditChange,
}


def parse_proposed_change(request_type: RequestType, data: Any) -> ProposedChange:
    """Build the typed payload for a request type from its JSON form."""
    if not isinstance(data, dict):
        raise ValidationError("proposedChange must be an object")
    payload_type = PAYLOAD_TYPES.get(request_type)
    if payload_type is None:
        raise ValidationError(f"Unsupported request type: {request_type}")
    return payload_type.from_dict(data)


def proposed_change_to_dict(change: ProposedChange) -> dict[str, Any]:
    """JSON form of a payload, omitting unset optional fields."""
    data = asdict(change)
    if isinstance(change, AttributeCreateChange):
        data["enumerations"] = [asdict(e) for e in change.enumerations]
    return {k: v for k, v in data.items() if v is not None}


@dataclass(slots=True)
class ChangeRequest:
    """
    A proposed edit to moderated catalog content.

    The projection is only written when the request is approved; the
    request itself is the audit trail of who asked and who decided.
    """
    request_id: str
    request_type: RequestType
    target_object: str
    requester: str
    justification: str
    proposed_change: ProposedChange
    status: RequestStatus = RequestStatus.PENDING
    current_value: Any = None
    assigned_to: str | None = None
    decision_comment: str | None = None
    decision_date: str | None = None
    requested_at: str | None = None
