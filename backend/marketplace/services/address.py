"""
Address Normalization Service

Cleans and normalizes address fields before saving to the database.
Canonicalizes county names ("Co. Kerry" -> "Kerry"), Eircodes ("v93 nn84" ->
"V93NN84") and tidies free-text address lines so slugs and filters match.
"""
import re
import logging
from typing import Optional

logger = logging.getLogger(__name__)

IRISH_COUNTIES = [
    "Carlow", "Cavan", "Clare", "Cork", "Donegal", "Dublin", "Galway",
    "Kerry", "Kildare", "Kilkenny", "Laois", "Leitrim", "Limerick",
    "Longford", "Louth", "Mayo", "Meath", "Monaghan", "Offaly",
    "Roscommon", "Sligo", "Tipperary", "Waterford", "Westmeath",
    "Wexford", "Wicklow",
]

_COUNTY_LOOKUP = {c.lower(): c for c in IRISH_COUNTIES}

# "Co. Kerry", "County Kerry", "Co Kerry"
_COUNTY_PREFIX = re.compile(r'^(co\.?|county)\s+', re.IGNORECASE)

# Routing key + unique identifier, e.g. "D02 X285", "V93NN84"
_EIRCODE_PATTERN = re.compile(r'^([AC-FHKNPRTV-Y]\d{2}|D6W)\s*([0-9AC-FHKNPRTV-Y]{4})$', re.IGNORECASE)


def clean_address_line(line: Optional[str]) -> Optional[str]:
    """Collapse whitespace and stray commas in a free-text address line"""
    if line is None:
        return None
    cleaned = re.sub(r',\s*,', ',', line)
    cleaned = re.sub(r'\s+', ' ', cleaned)
    cleaned = re.sub(r'\s*,\s*', ', ', cleaned)
    cleaned = cleaned.strip().strip(',').strip()
    return cleaned or None


def normalize_county(county: Optional[str]) -> Optional[str]:
    """Normalize county name to canonical form."""
    if not county:
        return county
    stripped = _COUNTY_PREFIX.sub('', county.strip())
    return _COUNTY_LOOKUP.get(stripped.lower(), stripped)


def normalize_eircode(eircode: Optional[str]) -> Optional[str]:
    """
    Upper-case and compact an Eircode.
    Values that don't look like an Eircode are kept (trimmed) rather than dropped.
    """
    if not eircode:
        return None
    raw = eircode.strip()
    match = _EIRCODE_PATTERN.match(raw)
    if not match:
        logger.debug(f"Unrecognised eircode format: {raw!r}")
        return raw.upper() or None
    return f"{match.group(1)}{match.group(2)}".upper()


def normalize_address_fields(
    address_line1: Optional[str] = None,
    address_line2: Optional[str] = None,
    city: Optional[str] = None,
    county: Optional[str] = None,
    eircode: Optional[str] = None,
) -> dict:
    """
    Normalize address fields before saving to the database.

    Returns:
        Dict with keys: address_line1, address_line2, city, county, eircode
    """
    return {
        'address_line1': clean_address_line(address_line1),
        'address_line2': clean_address_line(address_line2),
        'city': clean_address_line(city),
        'county': normalize_county(county),
        'eircode': normalize_eircode(eircode),
    }
