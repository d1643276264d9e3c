from __future__ import annotations

import math
from dataclasses import is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Union

from pl_lines import PLLine


JSONScalar = Union[str, int, float, bool, None]
JSONType = Union[JSONScalar, List["JSONType"], Dict[str, "JSONType"]]


def to_jsonable(obj: Any) -> JSONType:
    """
    Convert engine values into JSON-serializable structures.
    - Converts NaN/inf -> None
    - Converts datetime/date -> isoformat
    - Converts enums -> their value
    - Uses to_dict() on records, recurses into dict/list/tuple
    - Numpy scalars via .item()
    """
    if obj is None:
        return None

    if isinstance(obj, Enum):
        return to_jsonable(obj.value)

    if isinstance(obj, (str, bool, int)):
        return obj

    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if is_dataclass(obj) and hasattr(obj, "to_dict"):
        return to_jsonable(obj.to_dict())

    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]

    if hasattr(obj, "item") and callable(obj.item):
        return to_jsonable(obj.item())

    return str(obj)


def forecast_upsert_payload(line: PLLine) -> Dict[str, JSONType]:
    """The engine-owned fields of a line, as the persistence layer stores them."""
    return {
        "id": line.id,
        "forecast_months": to_jsonable(line.forecast_months),
        "analysis": to_jsonable(line.analysis),
    }
