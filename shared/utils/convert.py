from datetime import datetime, timezone
from enum import Enum
import json
import math
from typing import Any, Optional

from azure.data.tables import EdmType, EntityProperty

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


def convert_to_table_entity(data: dict) -> dict:
    """Convert complex types to Azure Table Storage compatible types."""
    entity = {}
    for key, value in data.items():
        if value is None:
            entity[key] = None
        elif isinstance(value, Enum):
            entity[key] = value.value
        elif isinstance(value, (list, dict)):
            entity[key] = json.dumps(value, default=str)
        elif isinstance(value, datetime):
            entity[key] = value
        elif isinstance(value, int) and not isinstance(value, bool) and not INT32_MIN <= value <= INT32_MAX:
            # epoch milliseconds and large amounts overflow the default Edm.Int32
            entity[key] = EntityProperty(value, EdmType.INT64)
        elif isinstance(value, (str, int, float, bool, bytes)):
            entity[key] = value
        else:
            entity[key] = str(value)
    return entity


def convert_from_table_entity(entity: dict) -> dict:
    """Plain Python values from an entity read back from Azure Table Storage."""
    data = {}
    for key, value in entity.items():
        if isinstance(value, EntityProperty):
            value = value.value
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat()
        data[key] = value
    return data


def parse_json_container(value: Any) -> Any:
    """Decode a JSON string written by convert_to_table_entity back into a list or dict."""
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("{") or text.startswith("["):
            try:
                return json.loads(text)
            except ValueError:
                return None
    return value


def parse_number(value: Any) -> Optional[float]:
    """Finite number from a number or numeric string, otherwise None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def parse_timestamp_ms(value: Any) -> Optional[float]:
    """
    Epoch milliseconds from an epoch number, a numeric string or a date string.

    Date strings without an offset are read as UTC.
    """
    numeric = parse_number(value)
    if numeric is not None:
        return numeric
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp() * 1000


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)
