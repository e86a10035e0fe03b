from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TypedDict

JsonDict = Dict[str, Any]


class RawLineEntry(TypedDict, total=False):
    text: str
    enlace: str
    value: str


@dataclass(frozen=True)
class Line:
    code: str
    name: str
    url: str
    internal_id: str

    def to_dict(self) -> JsonDict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Line":
        return cls(
            code=str(data["code"]),
            name=str(data["name"]),
            url=str(data.get("url") or ""),
            internal_id=str(data.get("internal_id") or ""),
        )


@dataclass(frozen=True)
class Stop:
    code: str
    name: str
    internal_id: str

    def to_dict(self) -> JsonDict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stop":
        return cls(
            code=str(data["code"]),
            name=str(data["name"]),
            internal_id=str(data.get("internal_id") or ""),
        )


@dataclass
class StopPage:
    """What one visit to a line page yields: its stops and, maybe, a token."""

    stops: List[Stop] = field(default_factory=list)
    token: Optional[str] = None


@dataclass(frozen=True)
class ArrivalEstimate:
    line: str
    stop: str
    minutes: int

    def to_dict(self) -> JsonDict:
        return {
            "line": self.line,
            "stop": self.stop,
            "arrival_time": self.minutes,
            "unit": "minutes",
        }
