"""Item fingerprint extraction from observed items.

Observed items come from custody events (incoming trade offers) and
inventory descriptions. Both use either the canonical camelCase names or
the names the Steam APIs expose, so one alias table serves both.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from giftexchange.backend.errors import InvalidObservation
from giftexchange.backend.models import ItemFingerprint, normalize_pattern_index, normalize_wear_float

CLASS_KEYS = ("classIdentifier", "classid")
INSTANCE_KEYS = ("instanceIdentifier", "instanceid")
DISPLAY_NAME_KEYS = ("displayName", "market_hash_name", "name")
PATTERN_KEYS = ("patternIndex", "pattern_index")
SEED_KEYS = ("paintSeed", "paintseed", "seed")
WEAR_KEYS = ("wearFloat", "paintwear", "float_value")


def _first_present(observed: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = observed.get(key)
        if value is not None and value != "":
            return value
    return None


def read_attributes(observed: Mapping[str, Any]) -> dict[str, Any]:
    """Return the descriptive attributes an observation exposes, normalized.

    Keys missing from the observation are missing from the result.
    """
    attributes: dict[str, Any] = {}

    instance = _first_present(observed, INSTANCE_KEYS)
    if instance is not None:
        attributes["instance_identifier"] = str(instance)

    display_name = _first_present(observed, DISPLAY_NAME_KEYS)
    if display_name is not None:
        attributes["display_name"] = str(display_name)

    pattern = _first_present(observed, PATTERN_KEYS)
    if pattern is None:
        pattern = _first_present(observed, SEED_KEYS)
    if pattern is not None:
        attributes["pattern_index"] = normalize_pattern_index(pattern)

    wear = _first_present(observed, WEAR_KEYS)
    if wear is not None:
        attributes["wear_float"] = normalize_wear_float(wear)

    return attributes


def read_class_identifier(observed: Mapping[str, Any]) -> str | None:
    class_identifier = _first_present(observed, CLASS_KEYS)
    return str(class_identifier) if class_identifier is not None else None


def extract(observed: Mapping[str, Any]) -> ItemFingerprint:
    class_identifier = read_class_identifier(observed)
    if class_identifier is None:
        raise InvalidObservation("Observed item has no class identifier")
    try:
        attributes = read_attributes(observed)
    except (TypeError, ValueError) as exc:
        raise InvalidObservation(f"Observed item {class_identifier} has malformed attributes: {exc}") from exc
    return ItemFingerprint(class_identifier=class_identifier, **attributes)


def extract_many(observed_items: Iterable[Mapping[str, Any]]) -> list[ItemFingerprint]:
    return [extract(observed) for observed in observed_items]
