"""
Slug derivation for listings

Slugs are derived from title + location, and never overwrite an existing one:
on collision a random suffix is tried a bounded number of times before
falling back to a millisecond timestamp.
"""
import logging
import re
import secrets
import time
import unicodedata
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import settings
from marketplace.models.listing import Listing

logger = logging.getLogger(__name__)


def slugify(text: str, max_length: Optional[int] = None) -> str:
    """
    "Alder, Dunloe Upper (V93 NN84)" -> "alder-dunloe-upper-v93-nn84"
    """
    max_length = max_length or settings.SLUG_MAX_LENGTH
    ascii_text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_text.lower()).strip('-')
    return slug[:max_length].rstrip('-')


def build_base_slug(title: str, city: Optional[str] = None, county: Optional[str] = None) -> str:
    """Base slug from title plus whichever location parts aren't already in it"""
    parts = [title or ""]
    title_slug = slugify(title or "")
    for location in (city, county):
        if location and slugify(location) not in title_slug:
            parts.append(location)
    return slugify(" ".join(parts)) or "listing"


async def slug_exists(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(Listing.id).where(Listing.slug == slug))
    return result.first() is not None


async def generate_unique_slug(db: AsyncSession, base: str) -> str:
    """
    Return a slug not yet used by any listing

    Tries ``base`` first, then ``base-<6 hex>`` up to SLUG_MAX_ATTEMPTS times,
    then ``base-<epoch millis>``.
    """
    if not await slug_exists(db, base):
        return base

    # Leave room for the suffix inside the column limit
    stem = base[: settings.SLUG_MAX_LENGTH - 14].rstrip('-')

    for _ in range(settings.SLUG_MAX_ATTEMPTS):
        candidate = f"{stem}-{secrets.token_hex(3)}"
        if not await slug_exists(db, candidate):
            return candidate

    fallback = f"{stem}-{int(time.time() * 1000)}"
    logger.warning(f"Slug suffix attempts exhausted for '{base}', using {fallback}")
    return fallback
