"""Typed access to the ``metadata`` text column on entities without first-class fields.

RFQs have no priority or tag columns and items have no tag column, so those
values live in a JSON object stored in ``metadata_json``. Every read and write
goes through here so callers never parse or re-serialize the blob themselves.
"""

import json
from typing import Any, Protocol


class HasExtensionBag(Protocol):
    metadata_json: str | None


def read_extension_bag(entity: HasExtensionBag) -> dict[str, Any]:
    raw = entity.metadata_json
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def write_extension_bag(entity: HasExtensionBag, bag: dict[str, Any]) -> None:
    entity.metadata_json = json.dumps(bag, default=str)


def update_extension_bag(entity: HasExtensionBag, **changes: Any) -> dict[str, Any]:
    bag = read_extension_bag(entity)
    bag.update(changes)
    write_extension_bag(entity, bag)
    return bag


def extension_tags(entity: HasExtensionBag) -> list[str]:
    tags = read_extension_bag(entity).get("tags")
    if not isinstance(tags, list):
        return []
    return [str(tag) for tag in tags]


def add_extension_tag(entity: HasExtensionBag, tag: str, **changes: Any) -> bool:
    """Append ``tag`` once; returns False when it was already present."""
    bag = read_extension_bag(entity)
    tags = bag.get("tags") if isinstance(bag.get("tags"), list) else []
    if tag in tags:
        return False
    bag["tags"] = [*tags, tag]
    bag.update(changes)
    write_extension_bag(entity, bag)
    return True
