"""Slug derivation and address normalization."""

import pytest

from conftest import make_user
from marketplace.core.config import settings
from marketplace.models.listing import Listing
from marketplace.services import slugs
from marketplace.services.address import (
    clean_address_line,
    normalize_address_fields,
    normalize_county,
    normalize_eircode,
)
from marketplace.services.slugs import build_base_slug, generate_unique_slug, slugify


@pytest.mark.parametrize("text, expected", [
    ("Alder, Dunloe Upper (V93 NN84)", "alder-dunloe-upper-v93-nn84"),
    ("  Café   Róisín  ", "cafe-roisin"),
    ("---", ""),
])
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_slugify_truncates_without_trailing_dash():
    slug = slugify("word " * 40)

    assert len(slug) <= settings.SLUG_MAX_LENGTH
    assert not slug.endswith("-")


def test_base_slug_skips_location_already_in_title():
    assert build_base_slug("Cottage in Dingle", "Dingle", "Kerry") == "cottage-in-dingle-kerry"
    assert build_base_slug("Site", None, None) == "site"
    assert build_base_slug("!!!", None, None) == "listing"


async def _add_listing(session_factory, owner_id, slug):
    async with session_factory() as session:
        session.add(Listing(owner_id=owner_id, title="x", price=1, slug=slug))
        await session.commit()


async def test_unique_slug_prefers_base(db):
    assert await generate_unique_slug(db, "cottage-dingle") == "cottage-dingle"


async def test_unique_slug_appends_hex_suffix(db, session_factory):
    user = await make_user(session_factory, "slugs@example.com")
    await _add_listing(session_factory, user.id, "cottage-dingle")

    slug = await generate_unique_slug(db, "cottage-dingle")

    assert slug.startswith("cottage-dingle-")
    assert len(slug.rsplit("-", 1)[1]) == 6


async def test_unique_slug_falls_back_to_timestamp(db, session_factory, monkeypatch):
    user = await make_user(session_factory, "slugs@example.com")
    await _add_listing(session_factory, user.id, "cottage-dingle")
    await _add_listing(session_factory, user.id, "cottage-dingle-aaaaaa")
    monkeypatch.setattr(slugs.secrets, "token_hex", lambda n: "aaaaaa")
    monkeypatch.setattr(slugs.time, "time", lambda: 1767225600.5)

    slug = await generate_unique_slug(db, "cottage-dingle")

    assert slug == "cottage-dingle-1767225600500"


@pytest.mark.parametrize("county, expected", [
    ("Co. Kerry", "Kerry"),
    ("county  galway", "Galway"),
    ("CO CORK", "Cork"),
    ("Somewhere", "Somewhere"),
    (None, None),
])
def test_normalize_county(county, expected):
    assert normalize_county(county) == expected


@pytest.mark.parametrize("eircode, expected", [
    ("v93 nn84", "V93NN84"),
    ("D6W XY12", "D6WXY12"),
    (" not-an-eircode ", "NOT-AN-EIRCODE"),
    ("", None),
])
def test_normalize_eircode(eircode, expected):
    assert normalize_eircode(eircode) == expected


def test_clean_address_line():
    assert clean_address_line("  12 ,, Main   Street , ") == "12, Main Street"
    assert clean_address_line("   ") is None


def test_normalize_address_fields():
    assert normalize_address_fields(
        address_line1=" Apt 2 ", city=" Tralee ", county="Co. Kerry", eircode="v92 x2y3"
    ) == {
        "address_line1": "Apt 2",
        "address_line2": None,
        "city": "Tralee",
        "county": "Kerry",
        "eircode": "V92X2Y3",
    }
