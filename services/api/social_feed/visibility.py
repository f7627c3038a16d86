"""
Visibility policy — decides whether a viewer may see a publication.

A publication is visible if ANY of these holds:
  1. visibility == public                                   (anyone, anonymous too)
  2. visibility == private and viewer is the author
  3. visibility == friends and (viewer is the author or the author is a friend)

Anonymous viewers only ever satisfy rule 1. Anything else is denied: an
unknown visibility value, or a publication whose author can't be resolved.

``can_view`` is the reference decision; the feed planner's predicate must
accept exactly the same publications.
"""
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Any, Optional


class Visibility(str, Enum):
    PUBLIC = "public"
    FRIENDS = "friends"
    PRIVATE = "private"


@dataclass(frozen=True)
class ViewerContext:
    """Who is asking. Built per request, never cached."""

    user_id: Optional[str] = None

    @classmethod
    def of(cls, user_id: Optional[str]) -> "ViewerContext":
        if user_id is None or not str(user_id).strip():
            return cls(None)
        return cls(str(user_id).strip())

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


def parse_visibility(value: Any) -> Optional[Visibility]:
    """Exact-match lookup; returns None for anything unrecognised."""
    if not isinstance(value, str):
        return None
    try:
        return Visibility(value)
    except ValueError:
        return None


def resolve_author(publication: Any) -> Optional[str]:
    author_id = getattr(publication, "user_id", None)
    if not isinstance(author_id, str) or not author_id:
        return None
    return author_id


def can_view(
    publication: Any,
    viewer_id: Optional[str],
    friend_ids: AbstractSet[str] = frozenset(),
) -> bool:
    visibility = parse_visibility(getattr(publication, "visibility", None))
    author_id = resolve_author(publication)
    if visibility is None or author_id is None:
        return False

    if visibility is Visibility.PUBLIC:
        return True
    if viewer_id is None:
        return False

    is_author = viewer_id == author_id
    if visibility is Visibility.PRIVATE:
        return is_author
    # Visibility.FRIENDS
    return is_author or author_id in (friend_ids or frozenset())
