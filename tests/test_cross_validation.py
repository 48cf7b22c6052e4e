import dataclasses
from datetime import datetime, timezone
from ipaddress import ip_address

import pytest

from geosentry.behavior import (
    AnalysisResult,
    BehavioralModel,
    BehaviorEngine,
    BehaviorInput,
    DefaultAnomalyDetector,
    DefaultBehavioralModel,
    ModelFailedError,
    NetworkInfo,
    RiskLevel,
)
from geosentry.cross_validation import (
    BehaviorAnalysisError,
    CrossValidationEngine,
    CrossValidationInput,
    DefaultScoringStrategy,
    FingerprintFailedError,
    GeoResolutionError,
    GeoResolver,
    InvalidKeyError,
    SignatureError,
)
from geosentry.fingerprint import (
    AdaptiveFingerprint,
    AdaptiveFingerprintEngine,
    DefaultAiProcessor,
    DefaultQuantumEngine,
    DefaultSecurityMonitor,
    EnvironmentProfile,
    ResourceConstraints,
    default_profiles,
)

SIGNING_KEY = b"secret"


class StaticGeoResolver(GeoResolver):
    def __init__(self, location):
        self.location = location
        self.calls = []

    async def resolve(self, ip_address, gps_data):
        self.calls.append((ip_address, gps_data))
        return self.location


class FailingGeoResolver(GeoResolver):
    async def resolve(self, ip_address, gps_data):
        raise RuntimeError("database unavailable")


class FailingModel(BehavioralModel):
    async def analyze(self, current, history):
        raise ModelFailedError("boom")


def make_engine(geo=None, model=None, key=SIGNING_KEY):
    geo = geo or StaticGeoResolver({"confidence": 90, "city": "Los Angeles"})
    fp_engine = AdaptiveFingerprintEngine(
        DefaultSecurityMonitor(),
        DefaultQuantumEngine(),
        DefaultAiProcessor(),
        default_profiles(),
    )
    behavior_engine = BehaviorEngine(
        model or DefaultBehavioralModel(),
        DefaultAnomalyDetector(max_speed_kmh=1200.0),
        10,
    )
    strategy = DefaultScoringStrategy(
        location_weight=0.4, fingerprint_weight=0.3, behavior_weight=0.3
    )
    return CrossValidationEngine(geo, fp_engine, behavior_engine, strategy, key)


def make_input(os_info="Windows 11", hour=12, is_vpn=False):
    return CrossValidationInput(
        ip_address=ip_address("8.8.8.8"),
        gps_data=(34.05, -118.24, 95, 5.0),
        os_info=os_info,
        device_details="Dell XPS",
        environment_context="desktop",
        behavior_input=BehaviorInput(
            entity_id="test_user",
            timestamp=datetime(2024, 5, 1, hour, 0, 0, tzinfo=timezone.utc),
            location=(34.05, -118.24),
            network_info=NetworkInfo("8.8.8.8", is_vpn, "WiFi"),
            device_fingerprint="initial_fp",
        ),
    )


def make_fingerprint(security_level):
    return AdaptiveFingerprint(
        base_fp="base",
        adaptive_fp="adaptive",
        ai_signature="sig",
        security_level=security_level,
        performance_level=8,
        environment_profile=EnvironmentProfile(
            "Desktop", "PC", 4, ResourceConstraints(2048, 10000)
        ),
        quantum_resistant=True,
        generation_time_us=1,
    )


def make_analysis(risk_score):
    return AnalysisResult(risk_score, RiskLevel.NONE, False, "ok")


@pytest.mark.asyncio
async def test_successful_validation_scenario():
    engine = make_engine()
    result = await engine.validate(make_input())
    assert result.is_trusted
    assert result.final_trust_score > 0.7
    assert result.final_trust_score == pytest.approx(0.87)
    assert len(result.signature) == 128
    assert engine.sign_verdict(result) == result.signature


@pytest.mark.asyncio
async def test_signature_detects_tampering():
    engine = make_engine()
    result = await engine.validate(make_input())
    tampered = dataclasses.replace(result, final_trust_score=0.1)
    assert engine.sign_verdict(tampered) != result.signature


@pytest.mark.asyncio
async def test_signature_depends_on_key():
    engine = make_engine()
    result = await engine.validate(make_input())
    other = make_engine(key=b"token")
    assert other.sign_verdict(result) != result.signature


@pytest.mark.asyncio
async def test_inputs_forwarded_to_geo_resolver():
    geo = StaticGeoResolver({"confidence": 90})
    engine = make_engine(geo=geo)
    result = await engine.validate(make_input())
    assert geo.calls == [(ip_address("8.8.8.8"), (34.05, -118.24, 95, 5.0))]
    assert result.to_dict()["geo_location"] == {"confidence": 90}


@pytest.mark.asyncio
async def test_low_trust_verdict():
    engine = make_engine(geo=StaticGeoResolver({"confidence": 10}))
    result = await engine.validate(make_input(hour=3, is_vpn=True))
    assert not result.is_trusted
    assert result.final_trust_score == pytest.approx(0.37)


@pytest.mark.asyncio
async def test_geo_failure_is_wrapped_and_behaviour_still_recorded():
    engine = make_engine(geo=FailingGeoResolver())
    with pytest.raises(GeoResolutionError, match="database unavailable"):
        await engine.validate(make_input())
    assert len(engine.behavior_engine.history()) == 1


@pytest.mark.asyncio
async def test_fingerprint_failure_is_wrapped():
    engine = make_engine()
    with pytest.raises(FingerprintFailedError, match="rootkit"):
        await engine.validate(make_input(os_info="rootkit os"))


@pytest.mark.asyncio
async def test_behaviour_failure_is_wrapped():
    engine = make_engine(model=FailingModel())
    with pytest.raises(BehaviorAnalysisError, match="boom"):
        await engine.validate(make_input())


@pytest.mark.asyncio
async def test_unserialisable_geo_result_fails_signing():
    engine = make_engine(geo=StaticGeoResolver({"confidence": 90, "extra": object()}))
    with pytest.raises(SignatureError):
        await engine.validate(make_input())


def test_non_bytes_key_rejected():
    with pytest.raises(InvalidKeyError):
        make_engine(key="secret")


@pytest.mark.asyncio
async def test_default_scoring_weights():
    strategy = DefaultScoringStrategy(0.4, 0.3, 0.3)
    score = await strategy.calculate_score(
        {"confidence": 50}, make_fingerprint(10), make_analysis(0.5)
    )
    assert score == pytest.approx(0.2 + 0.3 + 0.15)


@pytest.mark.asyncio
async def test_default_scoring_clamps_high():
    strategy = DefaultScoringStrategy(1.0, 1.0, 1.0)
    score = await strategy.calculate_score(
        {"confidence": 100}, make_fingerprint(10), make_analysis(0.0)
    )
    assert score == 1.0


@pytest.mark.asyncio
async def test_default_scoring_clamps_low():
    strategy = DefaultScoringStrategy(-1.0, 0.0, 0.0)
    score = await strategy.calculate_score(
        {"confidence": 100}, make_fingerprint(0), make_analysis(1.0)
    )
    assert score == 0.0