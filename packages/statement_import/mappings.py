# ruff: noqa: I001
"""Resolve imported category/tag labels to ledger entities.

Resolution is keyed by the exact parsed label. Hierarchical QIF categories
such as ``Food & Dining:Restaurants`` stay one key; splitting them is left to
consumers of the ``categories`` table. Missing entities are created, seeded
with the description and income flag from the file's ``!Type:Cat`` and
``!Type:Tag`` sections when present.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_db.models.ledger import Category, Tag
from .logging_setup import get_logger
from .models import ParsedCategory, ParsedTag

_logger = get_logger("statement_import.mappings")


def _clean_labels(labels: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for label in labels:
        if label and label.strip():
            seen.setdefault(label.strip(), None)
    return list(seen)


def resolve_categories(
    session: Session,
    labels: Iterable[str],
    *,
    known: Iterable[ParsedCategory] = (),
) -> dict[str, Category]:
    """Return ``{label: Category}``, creating categories that do not exist yet."""

    wanted = _clean_labels(labels)
    if not wanted:
        return {}

    existing = {
        c.name: c for c in session.scalars(select(Category).where(Category.name.in_(wanted)))
    }
    meta = {c.name: c for c in known}
    created = 0
    for label in wanted:
        if label in existing:
            continue
        parsed = meta.get(label)
        category = Category(
            name=label,
            description=parsed.description if parsed else None,
            classification="income" if parsed and parsed.income else "expense",
        )
        session.add(category)
        existing[label] = category
        created += 1
    if created:
        session.flush()
        _logger.info("Created %d categor%s from import", created, "y" if created == 1 else "ies")
    return existing


def resolve_tags(
    session: Session,
    labels: Iterable[str],
    *,
    known: Iterable[ParsedTag] = (),
) -> dict[str, Tag]:
    """Return ``{label: Tag}``, creating tags that do not exist yet."""

    wanted = _clean_labels(labels)
    if not wanted:
        return {}

    existing = {t.name: t for t in session.scalars(select(Tag).where(Tag.name.in_(wanted)))}
    meta = {t.name: t for t in known}
    created = 0
    for label in wanted:
        if label in existing:
            continue
        parsed = meta.get(label)
        tag = Tag(name=label, description=parsed.description if parsed else None)
        session.add(tag)
        existing[label] = tag
        created += 1
    if created:
        session.flush()
        _logger.info("Created %d tag(s) from import", created)
    return existing


__all__ = ["resolve_categories", "resolve_tags"]
