"""Best-effort free-text address normalization.

The fulfillment platform rejects addresses without a region, so every address
is decomposed here before it is sent anywhere:

    "2 Portola Plaza, Monterey, CA, 93940"
        -> street="2 Portola Plaza", city="Monterey", region="CA", postal_code="93940"

Comma-delimited segments are read as street, then city, then a region + postal
tail. Full region names are mapped to their two-letter code. When no region
can be found the default region is used instead of failing.
"""

import re

from loguru import logger

from .models import Address

DEFAULT_REGION = "CA"

REGION_CODES: dict[str, str] = {
    "alabama": "AL",
    "alaska": "AK",
    "arizona": "AZ",
    "arkansas": "AR",
    "california": "CA",
    "colorado": "CO",
    "connecticut": "CT",
    "delaware": "DE",
    "district of columbia": "DC",
    "florida": "FL",
    "georgia": "GA",
    "hawaii": "HI",
    "idaho": "ID",
    "illinois": "IL",
    "indiana": "IN",
    "iowa": "IA",
    "kansas": "KS",
    "kentucky": "KY",
    "louisiana": "LA",
    "maine": "ME",
    "maryland": "MD",
    "massachusetts": "MA",
    "michigan": "MI",
    "minnesota": "MN",
    "mississippi": "MS",
    "missouri": "MO",
    "montana": "MT",
    "nebraska": "NE",
    "nevada": "NV",
    "new hampshire": "NH",
    "new jersey": "NJ",
    "new mexico": "NM",
    "new york": "NY",
    "north carolina": "NC",
    "north dakota": "ND",
    "ohio": "OH",
    "oklahoma": "OK",
    "oregon": "OR",
    "pennsylvania": "PA",
    "rhode island": "RI",
    "south carolina": "SC",
    "south dakota": "SD",
    "tennessee": "TN",
    "texas": "TX",
    "utah": "UT",
    "vermont": "VT",
    "virginia": "VA",
    "washington": "WA",
    "west virginia": "WV",
    "wisconsin": "WI",
    "wyoming": "WY",
}

_COUNTRY_SEGMENTS = {"usa", "us", "u.s.a.", "u.s.", "united states"}

# "CA 93940", "California 93940-1234", "CA", "93940"
_TAIL_PATTERN = re.compile(
    r"^(?P<region>[A-Za-z][A-Za-z .]*?)?\s*(?P<postal>\d{5}(?:-\d{4})?)?$"
)
# "Monterey CA 93940" when city and tail share one segment
_CITY_TAIL_PATTERN = re.compile(
    r"^(?P<city>.+?)\s+(?P<region>[A-Za-z]{2})(?:\s+(?P<postal>\d{5}(?:-\d{4})?))?$"
)
# "2 Portola Plaza Monterey CA 93940" with no commas at all
_STREET_TAIL_PATTERN = re.compile(
    r"^(?P<street>.+?)\s+(?P<region>[A-Za-z]{2})\s+(?P<postal>\d{5}(?:-\d{4})?)$"
)


def normalize_region(name: str | None) -> str | None:
    """Map a region name or code to its two-letter code, or None if unknown."""
    if not name:
        return None
    cleaned = name.strip().rstrip(".").strip()
    if len(cleaned) == 2 and cleaned.isalpha():
        return cleaned.upper()
    return REGION_CODES.get(" ".join(cleaned.lower().split()))


def parse_address(text: str, default_region: str = DEFAULT_REGION) -> Address:
    """Split a free-text address into street, city, region and postal code.

    Raises:
        ValueError: If the address is blank.
    """
    segments = [segment.strip() for segment in text.split(",") if segment.strip()]
    if not segments:
        raise ValueError("Address is empty")

    while len(segments) > 1 and segments[-1].lower() in _COUNTRY_SEGMENTS:
        segments.pop()

    street = segments[0]
    city = ""
    region: str | None = None
    postal = ""

    if len(segments) == 1:
        match = _STREET_TAIL_PATTERN.match(street)
        if match:
            street = match["street"]
            region = normalize_region(match["region"])
            postal = match["postal"]
    else:
        city = segments[1]
        tail = " ".join(segments[2:])
        if tail:
            match = _TAIL_PATTERN.match(tail)
            if match:
                region = normalize_region(match["region"])
                postal = match["postal"] or ""
        else:
            match = _CITY_TAIL_PATTERN.match(city)
            if match and normalize_region(match["region"]):
                city = match["city"]
                region = normalize_region(match["region"])
                postal = match["postal"] or ""

    if region is None:
        logger.debug("No region found in {!r}; using {}", text, default_region)
        region = default_region

    return Address(street=street, city=city, region=region, postal_code=postal)
