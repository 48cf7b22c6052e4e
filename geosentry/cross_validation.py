"""Cross-validation: combine geo, device and behaviour evidence into a signed verdict."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import Any, Union

from geosentry.behavior import AnalysisResult, BehaviorEngine, BehaviorError, BehaviorInput
from geosentry.fingerprint import (
    AdaptiveFingerprint,
    AdaptiveFingerprintEngine,
    FingerprintError,
)

__all__ = [
    "CrossValidationError",
    "GeoResolutionError",
    "FingerprintFailedError",
    "BehaviorAnalysisError",
    "SignatureError",
    "InvalidKeyError",
    "GeoResolver",
    "CrossValidationInput",
    "ValidationResult",
    "ScoringStrategy",
    "DefaultScoringStrategy",
    "CrossValidationEngine",
]

IpAddress = Union[IPv4Address, IPv6Address]
GpsData = tuple[float, float, int, float]

TRUST_THRESHOLD = 0.7


# ---------------------------------------------------------------- errors


class CrossValidationError(Exception):
    """Base class for cross-validation failures."""


class GeoResolutionError(CrossValidationError):
    """The geo resolver failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"GeoResolver failed: {detail}")
        self.detail = detail


class FingerprintFailedError(CrossValidationError):
    """Device fingerprinting failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Device Fingerprinting failed: {detail}")
        self.detail = detail


class BehaviorAnalysisError(CrossValidationError):
    """Behaviour analysis failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Behavior Analysis failed: {detail}")
        self.detail = detail


class SignatureError(CrossValidationError):
    """The verdict could not be signed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Signature generation failed: {detail}")
        self.detail = detail


class InvalidKeyError(CrossValidationError):
    """The signing key is not usable."""

    def __init__(self) -> None:
        super().__init__("Invalid secret key for signing")


# ---------------------------------------------------------------- interfaces


class GeoResolver(ABC):
    """Resolves a location from an IP address and GPS data.

    The result is a mapping that carries at least a numeric ``confidence``
    (0-100) and may carry a ``city``; it must be JSON-serialisable.
    """

    @abstractmethod
    async def resolve(
        self, ip_address: IpAddress | None, gps_data: GpsData | None
    ) -> Mapping[str, Any]:
        """Return the resolved location."""


class ScoringStrategy(ABC):
    """Turns the three engine outputs into a trust score between 0.0 and 1.0."""

    @abstractmethod
    async def calculate_score(
        self,
        geo_result: Mapping[str, Any],
        fp_result: AdaptiveFingerprint,
        behavior_result: AnalysisResult,
    ) -> float:
        """Return the final trust score."""


# ---------------------------------------------------------------- models


@dataclass
class CrossValidationInput:
    """Raw inputs for one cross-validation run."""

    ip_address: IpAddress | None
    gps_data: GpsData | None
    os_info: str
    device_details: str
    environment_context: str
    behavior_input: BehaviorInput


@dataclass
class ValidationResult:
    """The final verdict with the evidence it was based on."""

    final_trust_score: float
    is_trusted: bool
    geo_location: Mapping[str, Any]
    device_fingerprint: AdaptiveFingerprint
    behavior_analysis: AnalysisResult
    signature: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_trust_score": self.final_trust_score,
            "is_trusted": self.is_trusted,
            "geo_location": dict(self.geo_location),
            "device_fingerprint": self.device_fingerprint.to_dict(),
            "behavior_analysis": self.behavior_analysis.to_dict(),
            "signature": self.signature,
            "timestamp": self.timestamp,
        }


# ---------------------------------------------------------------- scoring


@dataclass
class DefaultScoringStrategy(ScoringStrategy):
    """Weighted sum of location confidence, device security and behavioural trust."""

    location_weight: float
    fingerprint_weight: float
    behavior_weight: float

    async def calculate_score(
        self,
        geo_result: Mapping[str, Any],
        fp_result: AdaptiveFingerprint,
        behavior_result: AnalysisResult,
    ) -> float:
        location_score = float(geo_result["confidence"]) / 100.0
        fp_score = fp_result.security_level / 10.0
        behavior_score = 1.0 - behavior_result.risk_score
        final_score = (
            self.location_weight * location_score
            + self.fingerprint_weight * fp_score
            + self.behavior_weight * behavior_score
        )
        return min(max(final_score, 0.0), 1.0)


# ---------------------------------------------------------------- engine


class CrossValidationEngine:
    """Runs the specialised engines concurrently and signs the combined verdict."""

    def __init__(
        self,
        geo_resolver: GeoResolver,
        fp_engine: AdaptiveFingerprintEngine,
        behavior_engine: BehaviorEngine,
        scoring_strategy: ScoringStrategy,
        signing_key: bytes,
    ) -> None:
        if not isinstance(signing_key, (bytes, bytearray, memoryview)):
            raise InvalidKeyError()
        self.geo_resolver = geo_resolver
        self.fp_engine = fp_engine
        self.behavior_engine = behavior_engine
        self.scoring_strategy = scoring_strategy
        self._signing_key = bytes(signing_key)

    async def validate(self, input: CrossValidationInput) -> ValidationResult:
        """Gather evidence, score it and return a signed verdict."""
        geo_res, fp_res, behavior_res = await asyncio.gather(
            self.geo_resolver.resolve(input.ip_address, input.gps_data),
            self.fp_engine.generate_fingerprint(
                input.os_info, input.device_details, input.environment_context
            ),
            self.behavior_engine.process(input.behavior_input),
            return_exceptions=True,
        )

        if isinstance(geo_res, Exception):
            raise GeoResolutionError(str(geo_res)) from geo_res
        if isinstance(fp_res, FingerprintError):
            raise FingerprintFailedError(str(fp_res)) from fp_res
        if isinstance(behavior_res, BehaviorError):
            raise BehaviorAnalysisError(str(behavior_res)) from behavior_res
        for outcome in (fp_res, behavior_res):
            if isinstance(outcome, BaseException):
                raise outcome

        score = await self.scoring_strategy.calculate_score(geo_res, fp_res, behavior_res)
        result = ValidationResult(
            final_trust_score=score,
            is_trusted=score >= TRUST_THRESHOLD,
            geo_location=geo_res,
            device_fingerprint=fp_res,
            behavior_analysis=behavior_res,
            signature="",
            timestamp=int(time.time()),
        )
        result.signature = self.sign_verdict(result)
        return result

    def sign_verdict(self, result: ValidationResult) -> str:
        """HMAC-SHA512 over the verdict's JSON with the signature field blanked."""
        payload = result.to_dict()
        payload["signature"] = ""
        try:
            serialized = json.dumps(
                payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False
            ).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SignatureError(str(exc)) from exc
        return hmac.new(self._signing_key, serialized, hashlib.sha512).hexdigest()