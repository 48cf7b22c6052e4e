"""Smart-city access endpoint logic: parse a request and answer with a status and body."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from ipaddress import ip_address
from typing import Any

from geosentry.behavior import BehaviorInput, InvalidInputError
from geosentry.composite import AccessDeniedError, CompositeVerifier
from geosentry.cross_validation import GpsData, IpAddress

__all__ = ["SmartAccessRequest", "AccessResponse", "smart_access_verify"]

ALLOWED_ZONES = ("Riyadh", "Jeddah")
ALLOWED_HOURS = (6, 18)


def _is_pair_like(value: Any, length: int) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) == length
    )


def _parse_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be a number")
    return float(value)


def _parse_geo_input(value: Any) -> tuple[IpAddress, GpsData] | None:
    if value is None:
        return None
    if not _is_pair_like(value, 2):
        raise InvalidInputError("geo_input must be a pair of IP address and GPS data")
    raw_ip, raw_gps = value
    if not isinstance(raw_ip, str):
        raise InvalidInputError("IP address must be a string")
    try:
        address = ip_address(raw_ip)
    except ValueError as exc:
        raise InvalidInputError(f"invalid IP address {raw_ip!r}") from exc
    if not _is_pair_like(raw_gps, 4):
        raise InvalidInputError("GPS data must hold four values")
    latitude = _parse_number(raw_gps[0], "latitude")
    longitude = _parse_number(raw_gps[1], "longitude")
    accuracy = raw_gps[2]
    if isinstance(accuracy, bool) or not isinstance(accuracy, int) or not 0 <= accuracy <= 255:
        raise InvalidInputError("GPS accuracy must be an integer from 0 to 255")
    extra = _parse_number(raw_gps[3], "GPS value")
    return address, (latitude, longitude, accuracy, extra)


@dataclass
class SmartAccessRequest:
    """Everything the composite check needs about one access attempt."""

    geo_input: tuple[IpAddress, GpsData] | None
    behavior_input: BehaviorInput
    os_info: str
    device_details: str
    env_context: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SmartAccessRequest:
        """Build a request from decoded JSON; raises InvalidInputError when malformed."""
        if not isinstance(data, Mapping):
            raise InvalidInputError("request must be an object")
        try:
            raw_geo = data["geo_input"]
            raw_behavior = data["behavior_input"]
            os_info = data["os_info"]
            device_details = data["device_details"]
            env_context = data["env_context"]
        except KeyError as exc:
            raise InvalidInputError(f"missing field {exc.args[0]!r}") from exc
        for name, text in (
            ("os_info", os_info),
            ("device_details", device_details),
            ("env_context", env_context),
        ):
            if not isinstance(text, str):
                raise InvalidInputError(f"{name} must be a string")
        return cls(
            geo_input=_parse_geo_input(raw_geo),
            behavior_input=BehaviorInput.from_dict(raw_behavior),
            os_info=os_info,
            device_details=device_details,
            env_context=env_context,
        )


@dataclass(frozen=True)
class AccessResponse:
    """An HTTP-style answer: status code and plain-text body."""

    status: int
    body: str


async def smart_access_verify(
    verifier: CompositeVerifier, request: SmartAccessRequest
) -> AccessResponse:
    """Run the composite check under the default zone and hour policy."""
    try:
        granted = await verifier.verify_smart_access(
            request.geo_input,
            request.behavior_input,
            (request.os_info, request.device_details, request.env_context),
            list(ALLOWED_ZONES),
            ALLOWED_HOURS,
        )
    except AccessDeniedError as exc:
        return AccessResponse(403, f"Access denied: {exc}")
    if granted:
        return AccessResponse(200, "Access granted")
    return AccessResponse(403, "Access denied")