"""Free-text geographic coordinate parsing.

Accepted formats, tried in this order (first structural match wins):

    "33.5731°N, 7.5898°W"        hemisphere letters, S/W negate
    "33.5731, -7.5898"           bare signed decimal pair
    "lat: 33.5731, lng: -7.5898" labelled pair

Matching is a substring search, so surrounding text is tolerated.  Values
are returned as parsed; range checking is left to callers.

Usage:
    from chantier.utils.geo import parse_coordinates

    coords = parse_coordinates(project.coordinates)
    if coords is not None:
        lat, lng = coords
"""

import re
from dataclasses import dataclass

_NUMBER = r"\d+(?:\.\d*)?"
_SIGNED_NUMBER = r"-?\d+(?:\.\d*)?"

_HEMISPHERE_RE = re.compile(
    rf"({_NUMBER})\s*°?\s*([NS])\s*,?\s*({_NUMBER})\s*°?\s*([EW])",
    re.IGNORECASE,
)
# At least one separator character: a single number must never be split in two.
_DECIMAL_PAIR_RE = re.compile(
    rf"(?<![\d.])({_SIGNED_NUMBER})(?:\s*,\s*|\s+)({_SIGNED_NUMBER})(?!\.?\d)"
)
_LABELLED_RE = re.compile(
    rf"lat:\s*({_SIGNED_NUMBER})\s*,?\s*lng:\s*({_SIGNED_NUMBER})",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __iter__(self):
        yield self.latitude
        yield self.longitude

    def to_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


def _from_hemispheres(match: re.Match) -> Coordinates:
    lat = float(match.group(1))
    lng = float(match.group(3))
    if match.group(2).upper() == "S":
        lat = -lat
    if match.group(4).upper() == "W":
        lng = -lng
    return Coordinates(lat, lng)


def _from_pair(match: re.Match) -> Coordinates:
    return Coordinates(float(match.group(1)), float(match.group(2)))


_PATTERNS = (
    (_HEMISPHERE_RE, _from_hemispheres),
    (_DECIMAL_PAIR_RE, _from_pair),
    (_LABELLED_RE, _from_pair),
)


def parse_coordinates(text: str | None) -> Coordinates | None:
    """Parse *text* into a (latitude, longitude) pair.

    Returns None for empty input or when no accepted format is found.
    """
    if not text:
        return None
    for pattern, build in _PATTERNS:
        match = pattern.search(text)
        if match:
            return build(match)
    return None
