"""Composite smart-city access check built on the geo, behaviour and device engines."""

from __future__ import annotations

import time
from collections.abc import Sequence

from geosentry.behavior import BehaviorEngine, BehaviorError, BehaviorInput, RiskLevel
from geosentry.cross_validation import GeoResolver, GpsData, IpAddress
from geosentry.fingerprint import AdaptiveFingerprintEngine, FingerprintError

__all__ = ["AccessDeniedError", "CompositeVerifier"]

_DENIED_RISK_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})
_MIN_DEVICE_SECURITY_LEVEL = 5


class AccessDeniedError(Exception):
    """Access was refused; ``reason`` says which check failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _current_utc_hour() -> int:
    return time.gmtime().tm_hour


class CompositeVerifier:
    """Combines geo, behaviour and device checks under zone and time policies."""

    def __init__(
        self,
        geo: GeoResolver,
        behavior: BehaviorEngine,
        device_fp: AdaptiveFingerprintEngine,
    ) -> None:
        self.geo = geo
        self.behavior = behavior
        self.device_fp = device_fp

    async def verify_smart_access(
        self,
        geo_input: tuple[IpAddress, GpsData] | None,
        behavior_input: BehaviorInput,
        device_info: tuple[str, str, str],
        allowed_zones: Sequence[str],
        allowed_hours: tuple[int, int] | None,
    ) -> bool:
        """Return True when every check passes; raise AccessDeniedError otherwise."""
        if geo_input is None:
            raise AccessDeniedError("Geo input missing")
        ip_address, gps_data = geo_input
        try:
            location = await self.geo.resolve(ip_address, gps_data)
        except Exception as exc:
            raise AccessDeniedError(f"Geo error: {exc}") from exc

        city = location.get("city")
        if city is None:
            raise AccessDeniedError("Geo location city missing")
        if city not in allowed_zones:
            raise AccessDeniedError("Access denied: zone not allowed")

        if allowed_hours is not None:
            start, end = allowed_hours
            hour = _current_utc_hour()
            if hour < start or hour > end:
                raise AccessDeniedError("Access denied: outside allowed hours")

        try:
            analysis = await self.behavior.process(behavior_input)
        except BehaviorError as exc:
            raise AccessDeniedError(f"Behavior error: {exc}") from exc
        if analysis.risk_level in _DENIED_RISK_LEVELS:
            raise AccessDeniedError("Access denied: behavioral risk")

        os_info, device_details, env_context = device_info
        try:
            fingerprint = await self.device_fp.generate_fingerprint(
                os_info, device_details, env_context
            )
        except FingerprintError as exc:
            raise AccessDeniedError(f"Device FP error: {exc}") from exc
        if fingerprint.security_level < _MIN_DEVICE_SECURITY_LEVEL:
            raise AccessDeniedError("Access denied: device not trusted")

        return True