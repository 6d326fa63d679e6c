"""Pure document query helpers.

The server and the offline repository both filter through these, so search,
expiry windows and stats mean the same thing on every device.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, List, Protocol, TypeVar

from papertrail.models.document import Category, DocumentStats


class _Queryable(Protocol):
    title: str
    location: str
    description: str | None
    category: Category
    expiration_date: date | None


D = TypeVar("D", bound=_Queryable)


def _category_value(category) -> str:
    return category.value if isinstance(category, Category) else str(category)


def matches_query(doc: _Queryable, query: str) -> bool:
    """Case-insensitive substring match across title, location, description, category."""
    needle = query.lower()
    haystacks = (doc.title, doc.location, doc.description or "", _category_value(doc.category))
    return any(needle in value.lower() for value in haystacks)


def search(docs: Iterable[D], query: str) -> List[D]:
    return [doc for doc in docs if matches_query(doc, query)]


def expires_within(doc: _Queryable, today: date, days_ahead: int) -> bool:
    """True when the expiration date lies in [today, today + days_ahead]."""
    if doc.expiration_date is None:
        return False
    return today <= doc.expiration_date <= today + timedelta(days=days_ahead)


def expiring(docs: Iterable[D], today: date, days_ahead: int) -> List[D]:
    """Documents expiring inside the window, soonest first."""
    hits = [doc for doc in docs if expires_within(doc, today, days_ahead)]
    return sorted(hits, key=lambda doc: doc.expiration_date)


def compute_stats(docs: Iterable[D], today: date, window_days: int) -> DocumentStats:
    docs = list(docs)
    return DocumentStats(
        total_docs=len(docs),
        expiring_docs=sum(1 for doc in docs if expires_within(doc, today, window_days)),
        categories=len({_category_value(doc.category) for doc in docs}),
    )


def next_updated_at(previous: datetime | None, now: datetime) -> datetime:
    """Timestamp for a mutation, strictly after the previous one."""
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now
