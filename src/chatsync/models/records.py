"""
Wire records: the backing-store shape of users, messages and reactions.

Every field is optional on the wire. Required-ness is checked when a record is
materialized into a domain model, so one bad record never fails a stream.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """users/<id>"""
    display_name: Optional[str] = Field(default=None, alias="displayName")
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class ReactionRecord(BaseModel):
    """messages/<id>/reactions/<id>"""
    emoji: Optional[str] = None
    author_id: Optional[str] = Field(default=None, alias="authorId")
    created_at: Optional[int] = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class MessageRecord(BaseModel):
    """messages/<id>

    Reactions stay raw here so that one malformed reaction is skipped on its
    own instead of failing the whole message.
    """
    text: Optional[str] = None
    author_id: Optional[str] = Field(default=None, alias="authorId")
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    reactions: Optional[dict[str, Any]] = None

    model_config = {"populate_by_name": True, "extra": "ignore"}


def to_wire(record: BaseModel) -> dict[str, Any]:
    """Dump a record with wire field names, leaving out unset values."""
    return record.model_dump(by_alias=True, exclude_none=True)
