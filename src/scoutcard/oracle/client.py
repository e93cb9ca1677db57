"""Counting oracle interface.

The oracle is an external, non-deterministic counter: given an image and
one category it returns an estimated count. Concrete clients implement
:class:`OracleClient`; :func:`parse_oracle_payload` turns the oracle's text
answer into an :class:`OracleResponse` or raises
:class:`MalformedOracleResponse`.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union

from pydantic import ConfigDict, Field, ValidationError, field_validator

from scoutcard.analysis.models import Category, RecordModel
from scoutcard.oracle.errors import MalformedOracleResponse

__all__ = [
    "OracleRequest",
    "Location",
    "OracleResponse",
    "OracleClient",
    "parse_oracle_payload",
]

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class OracleRequest(RecordModel):
    """One counting question: how many ``category`` are in this image."""

    image_bytes: bytes = Field(repr=False)
    category: Category
    expected_count_hint: Optional[int] = Field(None, ge=0)


class Location(RecordModel):
    """Relative position of one counted object, both axes in [0, 1]."""

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)


class OracleResponse(RecordModel):
    """A single oracle answer. Extra keys in the payload are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    raw_count: int = Field(ge=0)
    locations: tuple[Location, ...] = ()
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)

    @field_validator("raw_count", mode="before")
    @classmethod
    def reject_bool_count(cls, v):
        if isinstance(v, bool):
            raise ValueError("count must be an integer, not a boolean")
        return v


class OracleClient(ABC):
    """Something that can answer :class:`OracleRequest` questions.

    Implementations must be safe to call from several threads at once: the
    multi-pass runner issues every pass for an image concurrently.

    Raises
    ------
    OracleTimeout, OracleUnavailable, MalformedOracleResponse
        From :meth:`count`, for a failed pass.
    """

    @abstractmethod
    def count(self, request: OracleRequest) -> OracleResponse:
        """Answer one counting request."""


def _clamp(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0.0, min(1.0, float(value)))
    return value


def parse_oracle_payload(payload: Union[str, bytes, Mapping]) -> OracleResponse:
    """Parse an oracle answer into an :class:`OracleResponse`.

    Text may be wrapped in a Markdown code fence. ``count`` is accepted as
    the count key, and defaults to the number of locations. Location
    coordinates are clamped into [0, 1].

    Raises
    ------
    MalformedOracleResponse
        If the payload is not JSON, not an object, or not a valid count.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    if isinstance(payload, str):
        text = payload.strip()
        fenced = _CODE_FENCE.search(text)
        if fenced:
            text = fenced.group(1).strip()
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedOracleResponse(f"Oracle payload is not JSON: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise MalformedOracleResponse(
            f"Oracle payload must be an object, got {type(payload).__name__}"
        )

    data = dict(payload)
    locations = data.get("locations") or []
    if not isinstance(locations, list):
        raise MalformedOracleResponse("Oracle payload 'locations' must be a list")
    data["locations"] = [
        {"x": _clamp(loc.get("x")), "y": _clamp(loc.get("y"))} if isinstance(loc, Mapping) else loc
        for loc in locations
    ]

    if "raw_count" not in data:
        count = data.pop("count", None)
        data["raw_count"] = len(locations) if count is None else count

    try:
        return OracleResponse.model_validate(data)
    except ValidationError as exc:
        details = "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors())
        raise MalformedOracleResponse(f"Invalid oracle payload: {details}") from exc
