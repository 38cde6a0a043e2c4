"""
Mapping between remote store rows and entry models.

The remote store speaks snake_case rows keyed by the database column
names (``space_id``, ``user_id``, ``username`` ...). Older deployments
name the P&L column ``pnl`` instead of ``profit_loss``, and both appear
in the wild, so reads accept either.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError as ModelValidationError

from tradefeed.core.analytics import parse_profit_loss
from tradefeed.core.entries.models import (
    Cursor,
    Entry,
    MentalState,
    Profile,
    TradeFields,
    TradeType,
)
from tradefeed.core.gateway.exceptions import ValidationError


def _enum_or_none(enum_cls: type, value: Any) -> Any:
    if value in (None, ""):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _invalid_row(kind: str, row: dict[str, Any], error: ModelValidationError) -> ValidationError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return ValidationError(f"invalid {kind} row {row.get('id')!r}: {first['msg']}", field=field)


def entry_from_row(row: dict[str, Any], space_key: str | None = None) -> Entry:
    """
    Build an Entry from a remote row.

    Args:
        row: Row as returned by the remote store
        space_key: Space the entry is displayed under; defaults to the
            row's ``space_id``

    Returns:
        Parsed Entry

    Raises:
        ValidationError: If the row is not an object, lacks an id, author or
            timestamp, or holds a column of the wrong type
    """
    if not isinstance(row, dict):
        raise ValidationError(f"entry row is not an object: {row!r}")

    try:
        entry_id = str(row["id"])
        author_id = str(row["user_id"])
        created_raw = row["created_at"]
    except KeyError as e:
        raise ValidationError(f"entry row missing column {e.args[0]}", field=e.args[0]) from None

    if isinstance(created_raw, datetime):
        created_at = created_raw
    else:
        try:
            created_at = datetime.fromisoformat(str(created_raw).replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(
                f"invalid created_at {created_raw!r}", field="created_at"
            ) from None

    profit_raw = row.get("profit_loss")
    if profit_raw is None:
        profit_raw = row.get("pnl")

    try:
        return Entry(
            id=entry_id,
            space_key=space_key or str(row.get("space_id", "")),
            author_id=author_id,
            author_display_name=row.get("username"),
            created_at=created_at,
            content=row.get("content") or "",
            tags=list(row.get("tags") or []),
            trade_type=_enum_or_none(TradeType, row.get("trade_type")),
            profit_loss=parse_profit_loss(profit_raw),
            mental_state=_enum_or_none(MentalState, row.get("mental_state")),
            image=row.get("image"),
        )
    except ModelValidationError as e:
        raise _invalid_row("entry", row, e) from None
    except TypeError as e:
        raise ValidationError(f"invalid entry row {entry_id!r}: {e}", field="tags") from None


def entry_insert_row(
    space_key: str,
    content: str,
    tags: list[str],
    trade_fields: TradeFields,
    author_id: str,
) -> dict[str, Any]:
    """Build the insert payload for a new entry."""
    return {
        "space_id": space_key,
        "user_id": author_id,
        "content": content,
        "tags": list(tags),
        "trade_type": trade_fields.trade_type.value if trade_fields.trade_type else None,
        "profit_loss": trade_fields.profit_loss,
        "mental_state": trade_fields.mental_state.value if trade_fields.mental_state else None,
        "image": trade_fields.image,
    }


def profile_from_row(row: dict[str, Any]) -> Profile | None:
    """
    Build a Profile from a remote row; rows without a name are skipped.

    Raises:
        ValidationError: If the row is not an object or does not fit a Profile
    """
    if not isinstance(row, dict):
        raise ValidationError(f"profile row is not an object: {row!r}")

    name = row.get("display_name") or row.get("username")
    if not row.get("id") or not name:
        return None
    try:
        return Profile(id=str(row["id"]), display_name=str(name))
    except ModelValidationError as e:
        raise _invalid_row("profile", row, e) from None


def cursor_params(cursor: Cursor | None) -> dict[str, str]:
    """Encode a cursor as query parameters."""
    if cursor is None:
        return {}
    return {"before_created_at": cursor.created_at.isoformat(), "before_id": cursor.id}


__all__ = [
    "cursor_params",
    "entry_from_row",
    "entry_insert_row",
    "profile_from_row",
]
