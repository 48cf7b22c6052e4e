"""Adaptive device fingerprinting with pluggable security, key and signature components."""

from __future__ import annotations

import asyncio
import copy
import json
import os as _os
import time
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any

from geosentry.hashing import blake3_hex

__all__ = [
    "FingerprintError",
    "UnsupportedEnvironmentError",
    "QuantumInitError",
    "SecurityThreatError",
    "ResourceConstraints",
    "EnvironmentProfile",
    "AdaptiveFingerprint",
    "SecurityMonitor",
    "QuantumEngine",
    "AiProcessor",
    "AdaptiveFingerprintEngine",
    "DefaultSecurityMonitor",
    "DefaultQuantumEngine",
    "DefaultAiProcessor",
    "default_profiles",
    "generate_adaptive_fingerprint",
]

_PERFORMANCE_LEVEL = 8


# ---------------------------------------------------------------- errors


class FingerprintError(Exception):
    """Base class for fingerprinting failures."""


class UnsupportedEnvironmentError(FingerprintError):
    """No profile is registered for the detected environment."""

    def __init__(self, environment: str) -> None:
        super().__init__(f"Unsupported environment: {environment}")
        self.environment = environment


class QuantumInitError(FingerprintError):
    """The key engine could not be initialised."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Quantum initialization failed: {detail}")
        self.detail = detail


class SecurityThreatError(FingerprintError):
    """A known threat was found in the device environment."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Security threat detected: {detail}")
        self.detail = detail


# ---------------------------------------------------------------- models


@dataclass
class ResourceConstraints:
    max_memory_kb: int
    max_processing_us: int


@dataclass
class EnvironmentProfile:
    os_type: str
    device_category: str
    threat_level: int
    resource_constraints: ResourceConstraints


@dataclass
class AdaptiveFingerprint:
    """A generated fingerprint together with the context it was made in."""

    base_fp: str
    adaptive_fp: str
    ai_signature: str
    security_level: int
    performance_level: int
    environment_profile: EnvironmentProfile
    quantum_resistant: bool
    generation_time_us: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------- interfaces


class SecurityMonitor(ABC):
    """Scans the environment for threats and reports a security level."""

    @abstractmethod
    async def scan_environment(self, os: str, device_info: str) -> None:
        """Raise SecurityThreatError when a threat is found."""

    @abstractmethod
    async def update_threat_database(self, threat_data: str) -> None:
        """Merge new threat definitions."""

    @abstractmethod
    async def current_security_level(self) -> int:
        """Return the current security level."""


class QuantumEngine(ABC):
    """Holds the secret key that makes fingerprints unique to this system."""

    @abstractmethod
    def secure_key(self) -> bytes:
        """Return the secret key bytes."""

    @abstractmethod
    def is_quantum_resistant(self) -> bool:
        """Whether the key material is considered quantum resistant."""


class AiProcessor(ABC):
    """Produces a signature over a fingerprint pair."""

    @abstractmethod
    async def generate_ai_signature(
        self, base_fp: str, adaptive_fp: str, env_profile: EnvironmentProfile
    ) -> str:
        """Return the signature as a string."""


# ---------------------------------------------------------------- engine


class AdaptiveFingerprintEngine:
    """Builds adaptive fingerprints from OS, device and environment data."""

    def __init__(
        self,
        security: SecurityMonitor,
        quantum: QuantumEngine,
        ai: AiProcessor,
        env_profiles: MutableMapping[str, EnvironmentProfile],
    ) -> None:
        self._security = security
        self._quantum = quantum
        self._ai = ai
        self._env_profiles = env_profiles

    async def generate_fingerprint(
        self, os: str, device_info: str, environment_data: str
    ) -> AdaptiveFingerprint:
        """Scan, pick a profile, hash the inputs and sign the result."""
        start = time.perf_counter_ns()
        await self._security.scan_environment(os, device_info)

        env_type = self.detect_environment_type(environment_data)
        profile = self._env_profiles.get(env_type)
        if profile is None:
            raise UnsupportedEnvironmentError(env_type)
        profile = copy.deepcopy(profile)

        base_fp = blake3_hex(os, device_info, self._quantum.secure_key())
        adaptive_fp = blake3_hex(
            base_fp, bytes([profile.threat_level & 0xFF]), profile.device_category
        )
        ai_signature = await self._ai.generate_ai_signature(base_fp, adaptive_fp, profile)

        return AdaptiveFingerprint(
            base_fp=base_fp,
            adaptive_fp=adaptive_fp,
            ai_signature=ai_signature,
            security_level=await self._security.current_security_level(),
            performance_level=_PERFORMANCE_LEVEL,
            environment_profile=profile,
            quantum_resistant=self._quantum.is_quantum_resistant(),
            generation_time_us=(time.perf_counter_ns() - start) // 1000,
        )

    def detect_environment_type(self, data: str) -> str:
        """Classify environment data as mobile, iot, server or desktop."""
        if any(word in data for word in ("mobile", "android", "ios")):
            return "mobile"
        if any(word in data for word in ("iot", "embedded")):
            return "iot"
        if any(word in data for word in ("server", "datacenter")):
            return "server"
        return "desktop"


# ---------------------------------------------------------------- defaults


class DefaultSecurityMonitor(SecurityMonitor):
    """Matches OS and device strings against a small table of known threats."""

    def __init__(self) -> None:
        self._threats: dict[str, int] = {"rootkit": 9, "memory_scrape": 7}
        self._security_level = 8

    async def scan_environment(self, os: str, device_info: str) -> None:
        for threat in self._threats:
            if threat in os or threat in device_info:
                raise SecurityThreatError(f"{threat} detected")

    async def update_threat_database(self, threat_data: str) -> None:
        """Add entries given as ``name`` or ``name=level``, separated by commas or newlines."""
        updates: dict[str, int] = {}
        for entry in threat_data.replace("\n", ",").split(","):
            entry = entry.strip()
            if not entry:
                continue
            name, sep, level_text = entry.partition("=")
            name = name.strip()
            if not name:
                raise FingerprintError(f"threat entry without a name: {entry!r}")
            level = 5
            if sep:
                try:
                    level = int(level_text.strip())
                except ValueError as exc:
                    raise FingerprintError(f"invalid threat level in {entry!r}") from exc
                if not 0 <= level <= 255:
                    raise FingerprintError(f"threat level out of range in {entry!r}")
            updates[name] = level
        self._threats.update(updates)

    async def current_security_level(self) -> int:
        return self._security_level


class DefaultQuantumEngine(QuantumEngine):
    """Holds 64 random bytes drawn from the operating system."""

    def __init__(self) -> None:
        try:
            self._key = _os.urandom(64)
        except (NotImplementedError, OSError) as exc:
            raise QuantumInitError(str(exc)) from exc

    def secure_key(self) -> bytes:
        return self._key

    def is_quantum_resistant(self) -> bool:
        return True


class DefaultAiProcessor(AiProcessor):
    """Hashes both fingerprints, adding a marker for high-threat environments."""

    async def generate_ai_signature(
        self, base_fp: str, adaptive_fp: str, env_profile: EnvironmentProfile
    ) -> str:
        parts: list[str | bytes] = [base_fp, adaptive_fp]
        if env_profile.threat_level > 7:
            parts.append(b"high_security_protocol")
        return blake3_hex(*parts)


# ---------------------------------------------------------------- shared engine


def default_profiles() -> dict[str, EnvironmentProfile]:
    """The built-in mobile and desktop environment profiles."""
    return {
        "mobile": EnvironmentProfile(
            os_type="Mobile",
            device_category="Phone/Tablet",
            threat_level=6,
            resource_constraints=ResourceConstraints(max_memory_kb=512, max_processing_us=5000),
        ),
        "desktop": EnvironmentProfile(
            os_type="Desktop",
            device_category="PC/Workstation",
            threat_level=4,
            resource_constraints=ResourceConstraints(
                max_memory_kb=2048, max_processing_us=10000
            ),
        ),
    }


@lru_cache(maxsize=1)
def _shared_engine() -> AdaptiveFingerprintEngine:
    return AdaptiveFingerprintEngine(
        DefaultSecurityMonitor(),
        DefaultQuantumEngine(),
        DefaultAiProcessor(),
        default_profiles(),
    )


def generate_adaptive_fingerprint(os: str, device_info: str, env_data: str) -> str | None:
    """Fingerprint with the shared default engine; JSON text, or None on failure."""
    try:
        engine = _shared_engine()
        fingerprint = asyncio.run(engine.generate_fingerprint(os, device_info, env_data))
    except FingerprintError:
        return None
    return fingerprint.to_json()