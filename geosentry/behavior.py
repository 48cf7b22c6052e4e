"""Behavioural risk analysis: rule-based scoring and impossible-travel detection."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

__all__ = [
    "BehaviorError",
    "InvalidInputError",
    "ModelFailedError",
    "InsufficientHistoryError",
    "NetworkInfo",
    "BehaviorInput",
    "RiskLevel",
    "AnalysisResult",
    "BehavioralModel",
    "AnomalyDetector",
    "BehaviorEngine",
    "DefaultBehavioralModel",
    "DefaultAnomalyDetector",
    "score_to_level",
    "haversine_distance",
]

EARTH_RADIUS_KM = 6371.0
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NORMAL_REASONING = "Behavior is within normal parameters."
_TIMESTAMP_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


# ---------------------------------------------------------------- errors


class BehaviorError(Exception):
    """Base class for behaviour analysis failures."""


class InvalidInputError(BehaviorError):
    """The input data could not be understood."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid input data: {detail}")
        self.detail = detail


class ModelFailedError(BehaviorError):
    """An analysis model failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Analysis model failed: {detail}")
        self.detail = detail


class InsufficientHistoryError(BehaviorError):
    """There is not enough history to analyse the behaviour."""

    def __init__(self) -> None:
        super().__init__("Historical data is insufficient for analysis")


# ---------------------------------------------------------------- timestamps


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    value = _to_utc(value)
    base = value.strftime("%Y-%m-%dT%H:%M:%S")
    micros = value.microsecond
    if micros == 0:
        fraction = ""
    elif micros % 1000 == 0:
        fraction = f".{micros // 1000:03d}"
    else:
        fraction = f".{micros:06d}"
    return f"{base}{fraction}Z"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return _to_utc(value)
    if not isinstance(value, str):
        raise InvalidInputError(f"timestamp must be a string, got {type(value).__name__}")
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise InvalidInputError(f"malformed timestamp {value!r}")
    date_part, time_part, fraction, offset = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        offset = "+00:00"
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{time_part}.{micros}{offset}")
    except ValueError as exc:
        raise InvalidInputError(f"malformed timestamp {value!r}") from exc
    return parsed.astimezone(timezone.utc)


def _unix_seconds(value: datetime) -> int:
    return (_to_utc(value) - _EPOCH) // timedelta(seconds=1)


# ---------------------------------------------------------------- models


@dataclass
class NetworkInfo:
    """Network details attached to a behaviour event."""

    ip_address: str
    is_vpn: bool
    connection_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip_address": self.ip_address,
            "is_vpn": self.is_vpn,
            "connection_type": self.connection_type,
        }


def _network_from_dict(data: Any) -> NetworkInfo:
    if not isinstance(data, Mapping):
        raise InvalidInputError("network_info must be an object")
    try:
        ip_address = data["ip_address"]
        is_vpn = data["is_vpn"]
        connection_type = data["connection_type"]
    except KeyError as exc:
        raise InvalidInputError(f"missing field {exc.args[0]!r} in network_info") from exc
    if not isinstance(ip_address, str) or not isinstance(connection_type, str):
        raise InvalidInputError("network_info fields must be strings")
    if not isinstance(is_vpn, bool):
        raise InvalidInputError("is_vpn must be a boolean")
    return NetworkInfo(ip_address, is_vpn, connection_type)


@dataclass
class BehaviorInput:
    """A single behaviour event: who, when, where, from which network and device."""

    entity_id: str
    timestamp: datetime
    location: tuple[float, float]
    network_info: NetworkInfo
    device_fingerprint: str

    def __post_init__(self) -> None:
        self.timestamp = _to_utc(self.timestamp)
        lat, lon = self.location
        self.location = (float(lat), float(lon))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "timestamp": _format_timestamp(self.timestamp),
            "location": [self.location[0], self.location[1]],
            "network_info": self.network_info.to_dict(),
            "device_fingerprint": self.device_fingerprint,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BehaviorInput:
        if not isinstance(data, Mapping):
            raise InvalidInputError("behaviour input must be an object")
        try:
            entity_id = data["entity_id"]
            raw_timestamp = data["timestamp"]
            raw_location = data["location"]
            raw_network = data["network_info"]
            device_fingerprint = data["device_fingerprint"]
        except KeyError as exc:
            raise InvalidInputError(f"missing field {exc.args[0]!r}") from exc
        if not isinstance(entity_id, str) or not isinstance(device_fingerprint, str):
            raise InvalidInputError("entity_id and device_fingerprint must be strings")
        if (
            not isinstance(raw_location, Sequence)
            or isinstance(raw_location, str)
            or len(raw_location) != 2
        ):
            raise InvalidInputError("location must be a pair of numbers")
        try:
            location = (float(raw_location[0]), float(raw_location[1]))
        except (TypeError, ValueError) as exc:
            raise InvalidInputError("location must be a pair of numbers") from exc
        return cls(
            entity_id=entity_id,
            timestamp=_parse_timestamp(raw_timestamp),
            location=location,
            network_info=_network_from_dict(raw_network),
            device_fingerprint=device_fingerprint,
        )


class RiskLevel(Enum):
    """Descriptive risk levels, from lowest to highest."""

    NONE = "None"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class AnalysisResult:
    """Outcome of analysing one behaviour event."""

    risk_score: float
    risk_level: RiskLevel
    anomaly_detected: bool
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "anomaly_detected": self.anomaly_detected,
            "reasoning": self.reasoning,
        }


# ---------------------------------------------------------------- interfaces


class BehavioralModel(ABC):
    """Scores the risk of a behaviour event against the history."""

    @abstractmethod
    async def analyze(
        self, current: BehaviorInput, history: Sequence[BehaviorInput]
    ) -> float:
        """Return a risk score between 0.0 and 1.0."""


class AnomalyDetector(ABC):
    """Decides whether a behaviour event is anomalous."""

    @abstractmethod
    async def detect(
        self, current: BehaviorInput, history: Sequence[BehaviorInput]
    ) -> str | None:
        """Return a description of the anomaly, or None when there is none."""


# ---------------------------------------------------------------- engine


def score_to_level(score: float) -> RiskLevel:
    """Map a numeric risk score to a descriptive level."""
    if score >= 0.9:
        return RiskLevel.CRITICAL
    if score >= 0.7:
        return RiskLevel.HIGH
    if score >= 0.4:
        return RiskLevel.MEDIUM
    if score > 0.1:
        return RiskLevel.LOW
    return RiskLevel.NONE


class BehaviorEngine:
    """Runs a detector and a model over each event and keeps a bounded history."""

    def __init__(
        self,
        model: BehavioralModel,
        detector: AnomalyDetector,
        history_limit: int,
    ) -> None:
        if history_limit < 0:
            raise ValueError("history_limit must not be negative")
        self._model = model
        self._detector = detector
        self._history: deque[BehaviorInput] = deque()
        self._history_limit = history_limit

    async def process(self, input: BehaviorInput) -> AnalysisResult:
        """Analyse one event, then record it in the history."""
        snapshot = tuple(self._history)
        anomaly = await self._detector.detect(input, snapshot)
        risk_score = await self._model.analyze(input, snapshot)
        result = AnalysisResult(
            risk_score=risk_score,
            risk_level=score_to_level(risk_score),
            anomaly_detected=anomaly is not None,
            reasoning=anomaly if anomaly is not None else _NORMAL_REASONING,
        )
        if len(self._history) >= self._history_limit and self._history:
            self._history.popleft()
        self._history.append(input)
        return result

    def history(self) -> list[BehaviorInput]:
        """Return the recorded events, oldest first."""
        return list(self._history)


# ---------------------------------------------------------------- defaults


class DefaultBehavioralModel(BehavioralModel):
    """Rule-based model: night-time activity, VPN use and device changes add risk."""

    async def analyze(
        self, current: BehaviorInput, history: Sequence[BehaviorInput]
    ) -> float:
        score = 0.0
        if self.is_suspicious_time(current.timestamp):
            score += 0.3
        if current.network_info.is_vpn:
            score += 0.3
        if history:
            if history[-1].device_fingerprint != current.device_fingerprint:
                score += 0.4
        else:
            score += 0.1
        return min(score, 1.0)

    def is_suspicious_time(self, timestamp: datetime) -> bool:
        """True between midnight and 05:59 UTC."""
        return 0 <= _to_utc(timestamp).hour <= 5


@dataclass
class DefaultAnomalyDetector(AnomalyDetector):
    """Flags travel between consecutive events faster than ``max_speed_kmh``."""

    max_speed_kmh: float = field(default=1200.0)

    async def detect(
        self, current: BehaviorInput, history: Sequence[BehaviorInput]
    ) -> str | None:
        if not history:
            return None
        last = history[-1]
        distance_km = haversine_distance(current.location, last.location)
        elapsed = _unix_seconds(current.timestamp) - _unix_seconds(last.timestamp)
        if elapsed <= 0:
            return None
        speed_kmh = distance_km / (elapsed / 3600.0)
        if speed_kmh > self.max_speed_kmh:
            return f"Anomaly detected: Impossible travel speed of {speed_kmh:.2f} km/h."
        return None


def haversine_distance(p1: tuple[float, float], p2: tuple[float, float]) -> float:
    """Great-circle distance in kilometres between two (lat, lon) points."""
    lat1, lon1 = math.radians(p1[0]), math.radians(p1[1])
    lat2, lon2 = math.radians(p2[0]), math.radians(p2[1])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    c = 2.0 * math.asin(math.sqrt(a))
    return EARTH_RADIUS_KM * c