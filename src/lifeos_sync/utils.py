"""Utility functions shared across lifeos-sync."""

import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from lifeos_sync.observability.logging import get_logger
from lifeos_sync.persistence.errors import PersistenceError
from lifeos_sync.persistence.kv_store import KeyValueStore

logger = get_logger(__name__)


def date_key(days_ago: int = 0, today: Optional[date] = None) -> str:
    """Returns the YYYY-MM-DD key for a day in the local timezone."""
    day = (today or datetime.now().date()) - timedelta(days=days_ago)
    return day.isoformat()


def today_key() -> str:
    return date_key(0)


def get_or_create_device_id(kv_store: KeyValueStore, key: str = "deviceId") -> str:
    """Returns this installation's device id, creating one on first use.

    A store that cannot be read or written yields a fresh id for this
    process only.
    """
    try:
        device_id = kv_store.get(key)
        if device_id:
            return device_id
    except PersistenceError as e:
        logger.warning(f"Cannot read device id: {str(e)}")

    device_id = f"device_{uuid.uuid4().hex[:9]}"
    try:
        kv_store.set(key, device_id)
    except PersistenceError as e:
        logger.warning(f"Cannot persist device id: {str(e)}")
    return device_id
