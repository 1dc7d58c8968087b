from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


logger = logging.getLogger(__name__)

PARITY = "type"
SIZE = "size_type"

_DIGITS = re.compile(r"\d")


@dataclass(frozen=True)
class Record:
    height: int
    hash: str
    result_value: int
    type: str  # "ODD" | "EVEN"
    size_type: str  # "BIG" | "SMALL"
    timestamp: str


class RecordPayload(BaseModel):
    """Wire shape of a block record as pushed by the backend.

    Accepts both the camelCase keys used on the wire and snake_case keys.
    A raw block carrying no outcome fields is classified from its hash.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    height: int = Field(ge=0)
    hash: str = ""
    result_value: int = Field(alias="resultValue", ge=0, le=9)
    type: Literal["ODD", "EVEN"]
    size_type: Literal["BIG", "SMALL"] = Field(alias="sizeType")
    timestamp: Union[str, int] = ""

    @model_validator(mode="before")
    @classmethod
    def _classify_raw_block(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "resultValue" in data or "result_value" in data:
            return data
        value = derive_result_from_hash(str(data.get("hash") or ""))
        return {
            **data,
            "resultValue": value,
            "type": "EVEN" if value % 2 == 0 else "ODD",
            "sizeType": "BIG" if value >= 5 else "SMALL",
        }

    @field_validator("timestamp")
    @classmethod
    def _stringify(cls, v: Union[str, int]) -> Union[str, int]:
        if isinstance(v, int):
            return format_timestamp(v)
        return v

    def to_record(self) -> Record:
        return Record(
            height=self.height,
            hash=self.hash,
            result_value=self.result_value,
            type=self.type,
            size_type=self.size_type,
            timestamp=str(self.timestamp),
        )


def parse_record(payload: Any) -> Optional[Record]:
    """Validate a raw mapping into a Record; None when it is malformed."""
    if isinstance(payload, Record):
        return payload
    if not isinstance(payload, Mapping):
        logger.debug("Dropping non-mapping payload", extra={"payload_type": type(payload).__name__})
        return None
    try:
        return RecordPayload.model_validate(dict(payload)).to_record()
    except ValidationError as exc:
        logger.debug("Dropping malformed record", extra={"errors": exc.error_count()})
        return None


def derive_result_from_hash(block_hash: str) -> int:
    """Outcome digit of a block: the last decimal digit in its hash."""
    if not block_hash:
        return 0
    digits = _DIGITS.findall(block_hash)
    return int(digits[-1]) if digits else 0


def format_timestamp(ts_ms: int) -> str:
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
