from typing import Any

import orjson
from fastapi.encoders import jsonable_encoder


def dumps(obj: Any) -> str:
    """Serialize obj to a compact JSON string, with datetime/Decimal support."""
    return orjson.dumps(jsonable_encoder(obj)).decode("utf-8")


def loads(data: str | bytes) -> Any:
    return orjson.loads(data)
