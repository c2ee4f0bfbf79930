# jobboard/db/encoding.py
from typing import Any

from bson import ObjectId
from pydantic import BaseModel

SENSITIVE_FIELDS = {"password", "verification_token"}

def to_json(value: Any) -> Any:
    """
    Make documents and raw aggregation rows JSON friendly:
    ObjectId -> str, Mongo's ``_id`` -> ``id``, credentials dropped.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", exclude=SENSITIVE_FIELDS & set(type(value).model_fields))
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if k in SENSITIVE_FIELDS:
                continue
            out["id" if k == "_id" else k] = to_json(v)
        return out
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    return value
