# booking-backend/hosts.py

import logging
import re
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from exceptions import HostNotFoundError

logger = logging.getLogger(__name__)

SEPARATORS = re.compile(r"[-_\s]+")


def normalize_slug(slug: str) -> str:
    return slug.strip().lower()


def slug_to_name(slug: str) -> str:
    """'jane-doe' / 'Jane__Doe' -> 'jane doe'"""
    return SEPARATORS.sub(" ", normalize_slug(slug)).strip()


class HostLookup:
    """One way of turning a public slug into a host."""

    def __init__(self, slug: str):
        self.slug = slug

    def find(self, db: Session) -> Optional[models.User]:
        raise NotImplementedError


class ById(HostLookup):
    def find(self, db):
        return db.query(models.User).filter(models.User.id == self.slug.strip()).first()


class ByEmail(HostLookup):
    def find(self, db):
        email = normalize_slug(self.slug)
        return db.query(models.User).filter(func.lower(models.User.email) == email).first()


class ByNameSlug(HostLookup):
    def find(self, db):
        name = slug_to_name(self.slug)
        if not name:
            return None
        # Two hosts whose names normalize alike resolve to the lowest id
        return (
            db.query(models.User)
            .filter(func.lower(models.User.name) == name)
            .order_by(models.User.id)
            .first()
        )


LOOKUP_ORDER = (ById, ByEmail, ByNameSlug)


def resolve_host(db: Session, slug: str) -> models.User:
    """Try each lookup in priority order; the first match wins."""
    if not slug or not slug.strip():
        raise HostNotFoundError(slug or "")

    for strategy in LOOKUP_ORDER:
        host = strategy(slug).find(db)
        if host is not None:
            logger.debug(f"Resolved host slug '{slug}' via {strategy.__name__} -> {host.id}")
            return host

    raise HostNotFoundError(slug)
