"""
Feed query planner — predicate pushdown for visibility.

Instead of fetching rows and filtering them in Python (which reads rows that
are never returned and breaks the total count), the planner composes a
disjunction of visibility rules that the database evaluates:

  PublicRule            visibility = 'public'
  OwnPrivateRule        visibility = 'private' AND user_id = :viewer
  OwnFriendsRule        visibility = 'friends' AND user_id = :viewer
  FriendsOfViewerRule   visibility = 'friends' AND user_id IN (:friend_ids)

Every rule renders twice — ``matches()`` for in-memory rows and
``to_clause()`` for SQLAlchemy — and both must agree with
``visibility.can_view``. The whole disjunction is guarded by "author is
resolved", mirroring the evaluator's default-deny.

MySQL and TiDB collations ignore trailing spaces even when binary
('public ' = 'public' is true under utf8mb4_bin), so every comparison also
checks the column as a binary string, where padding is significant.
"""
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Optional, Union

from sqlalchemy import String, and_, false, or_
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.functions import FunctionElement

from social_feed.models import Publication
from social_feed.visibility import Visibility, resolve_author


class _binary_string(FunctionElement):
    """The column compared as raw bytes: no collation, no pad space."""

    type = String()
    name = "binary_string"
    inherit_cache = True


@compiles(_binary_string)
def _compile_binary_string(element, compiler, **kw):
    # SQLite compares TEXT with BINARY collation already
    return compiler.process(element.clauses, **kw)


@compiles(_binary_string, "mysql")
def _compile_binary_string_mysql(element, compiler, **kw):
    return "CAST(%s AS BINARY)" % compiler.process(element.clauses, **kw)


def _exact(column, value: str) -> ColumnElement:
    # The plain equality keeps the index usable; the binary one decides.
    return and_(column == value, _binary_string(column) == value)


def _exact_in(column, values) -> ColumnElement:
    values = sorted(values)
    return and_(column.in_(values), _binary_string(column).in_(values))


@dataclass(frozen=True)
class PublicRule:
    def matches(self, publication: Any) -> bool:
        return getattr(publication, "visibility", None) == Visibility.PUBLIC.value

    def to_clause(self) -> ColumnElement:
        return _exact(Publication.visibility, Visibility.PUBLIC.value)


@dataclass(frozen=True)
class OwnPrivateRule:
    viewer_id: str

    def matches(self, publication: Any) -> bool:
        return (
            getattr(publication, "visibility", None) == Visibility.PRIVATE.value
            and getattr(publication, "user_id", None) == self.viewer_id
        )

    def to_clause(self) -> ColumnElement:
        return and_(
            _exact(Publication.visibility, Visibility.PRIVATE.value),
            _exact(Publication.user_id, self.viewer_id),
        )


@dataclass(frozen=True)
class OwnFriendsRule:
    viewer_id: str

    def matches(self, publication: Any) -> bool:
        return (
            getattr(publication, "visibility", None) == Visibility.FRIENDS.value
            and getattr(publication, "user_id", None) == self.viewer_id
        )

    def to_clause(self) -> ColumnElement:
        return and_(
            _exact(Publication.visibility, Visibility.FRIENDS.value),
            _exact(Publication.user_id, self.viewer_id),
        )


@dataclass(frozen=True)
class FriendsOfViewerRule:
    friend_ids: frozenset

    def matches(self, publication: Any) -> bool:
        return (
            getattr(publication, "visibility", None) == Visibility.FRIENDS.value
            and getattr(publication, "user_id", None) in self.friend_ids
        )

    def to_clause(self) -> ColumnElement:
        # sorted inside _exact_in keeps the rendered SQL stable for caching
        return and_(
            _exact(Publication.visibility, Visibility.FRIENDS.value),
            _exact_in(Publication.user_id, self.friend_ids),
        )


VisibilityRule = Union[PublicRule, OwnPrivateRule, OwnFriendsRule, FriendsOfViewerRule]


def _author_resolved_clause() -> ColumnElement:
    return and_(Publication.user_id.is_not(None), _binary_string(Publication.user_id) != "")


@dataclass(frozen=True)
class VisibilityPredicate:
    rules: tuple

    def matches(self, publication: Any) -> bool:
        if resolve_author(publication) is None:
            return False
        return any(rule.matches(publication) for rule in self.rules)

    def to_clause(self) -> ColumnElement:
        if not self.rules:
            return false()
        return and_(_author_resolved_clause(), or_(*(r.to_clause() for r in self.rules)))


def build_visibility_predicate(
    viewer_id: Optional[str],
    friend_ids: AbstractSet[str] = frozenset(),
) -> VisibilityPredicate:
    rules: list = [PublicRule()]
    if viewer_id is None:
        return VisibilityPredicate(tuple(rules))

    rules.append(OwnPrivateRule(viewer_id))
    rules.append(OwnFriendsRule(viewer_id))
    if friend_ids:
        rules.append(FriendsOfViewerRule(frozenset(friend_ids)))
    return VisibilityPredicate(tuple(rules))


@dataclass(frozen=True)
class FeedQueryPlan:
    """Visibility predicate ∧ active ∧ optional author filter, plus ordering."""

    predicate: VisibilityPredicate
    author_id: Optional[str] = None
    order_by: tuple = field(
        default=(Publication.created_at.desc(), Publication.id.asc()),
        compare=False,
    )

    def matches(self, publication: Any) -> bool:
        if getattr(publication, "is_active", None) is not True:
            return False
        if self.author_id is not None and getattr(publication, "user_id", None) != self.author_id:
            return False
        return self.predicate.matches(publication)

    def where_clause(self) -> ColumnElement:
        conditions = [Publication.is_active.is_(True), self.predicate.to_clause()]
        if self.author_id is not None:
            conditions.append(_exact(Publication.user_id, self.author_id))
        return and_(*conditions)


def plan_feed_query(
    viewer_id: Optional[str],
    friend_ids: AbstractSet[str] = frozenset(),
    author_id: Optional[str] = None,
) -> FeedQueryPlan:
    return FeedQueryPlan(
        predicate=build_visibility_predicate(viewer_id, friend_ids),
        author_id=author_id,
    )
