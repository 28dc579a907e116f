"""
Property repository: record shaping on top of the database and blob store.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from estate_backend.db import PropertyDbClient
from estate_backend.storage import StorageClient, upload_asset

logger = logging.getLogger(__name__)

TEXT_FIELDS = ("name", "location", "description")
NUMERIC_FIELDS = ("price", "bedrooms", "bathrooms")
EDITABLE_FIELDS = TEXT_FIELDS + NUMERIC_FIELDS + ("propertyType", "period")

DEFAULTS: dict[str, Any] = {
    "price": 0,
    "bedrooms": 0,
    "bathrooms": 0,
    "propertyType": "Rent",
    "period": "",
}


class MissingImageError(ValueError):
    """Raised when a property is created without an image payload."""


class PropertyNotFoundError(LookupError):
    """Raised when an operation targets a key with no stored record."""


def coerce_number(value: Any) -> Any:
    """
    Turn a form value into a number.

    Empty values become 0. Strings that do not parse as numbers are returned
    unchanged.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return value
    return number if math.isfinite(number) else value


def with_id(key: str, record: Optional[dict]) -> Optional[dict]:
    if record is None:
        return None
    return {"id": key, **record}


def _supplied(data: dict) -> dict:
    fields = {}
    for name in EDITABLE_FIELDS:
        if data.get(name) is None:
            continue
        value = data[name]
        if name in NUMERIC_FIELDS:
            value = coerce_number(value)
        elif name in DEFAULTS and value == "":
            value = DEFAULTS[name]
        fields[name] = value
    return fields


class PropertyRepository:
    def __init__(self, db: PropertyDbClient, storage: StorageClient):
        self.db = db
        self.storage = storage

    def create(
        self, data: dict, image_bytes: Optional[bytes], image_name: Optional[str]
    ) -> dict:
        """
        Upload the image, then persist the record with defaults applied.

        The blob is not removed if the database write fails afterwards.
        """
        if not image_bytes:
            raise MissingImageError("No image file was uploaded.")

        image_url = upload_asset(self.storage, image_bytes, image_name or "")
        record = {**DEFAULTS, **_supplied(data)}
        record["imageUrl"] = image_url

        key = self.db.push(record)
        logger.info("Created property %s", key)
        return with_id(key, record)

    def list(self) -> list[dict]:
        return [with_id(key, record) for key, record in self.db.scan()]

    def get_by_id(self, property_id: str) -> Optional[dict]:
        return with_id(property_id, self.db.get(property_id))

    def update(
        self,
        property_id: str,
        data: dict,
        image_bytes: Optional[bytes] = None,
        image_name: Optional[str] = None,
    ) -> dict:
        """Merge supplied fields into the record, replacing imageUrl only with a new image."""
        updates = _supplied(data)
        if image_bytes:
            updates["imageUrl"] = upload_asset(
                self.storage, image_bytes, image_name or ""
            )
        if updates:
            self.db.update(property_id, updates)
            logger.info("Updated property %s (%s)", property_id, ", ".join(updates))
        return updates

    def delete(self, property_id: str) -> None:
        if self.db.get(property_id) is None:
            raise PropertyNotFoundError(property_id)
        # The stored image stays in the blob store.
        self.db.delete(property_id)
        logger.info("Deleted property %s", property_id)
