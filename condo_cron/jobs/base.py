"""Shared job contract"""

from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any, Dict, Protocol


class Job(Protocol):
    """A scheduled unit of work; run() returns a dataclass result"""

    name: str

    async def run(self) -> Any: ...


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def as_payload(result: Any) -> Dict[str, Any]:
    """Convert a job result into JSON-safe primitives"""
    if is_dataclass(result):
        return _plain(asdict(result))
    if isinstance(result, dict):
        return _plain(result)
    return {"value": _plain(result)}
