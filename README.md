# geosentry

geosentry is a set of asyncio building blocks for deciding whether to trust an
access attempt. Each block weighs a different kind of evidence.

- **Behaviour analysis** (`geosentry.behavior`). `BehaviorEngine` keeps a
  bounded history of events. It scores each event with a `BehavioralModel` and
  checks it with an `AnomalyDetector`.
- **Device fingerprinting** (`geosentry.fingerprint`).
  `AdaptiveFingerprintEngine` first scans the device description for known
  threats. It then classifies the environment and builds three things: a keyed
  base fingerprint, an adaptive fingerprint, and a signature over both. All
  hashes are BLAKE3, computed by the pure-Python `geosentry.hashing.Blake3`.
- **Cross-validation** (`geosentry.cross_validation`).
  `CrossValidationEngine` runs three checks concurrently: geolocation,
  fingerprint and behaviour. A `ScoringStrategy` combines their results into
  one trust score, and the engine signs the verdict with HMAC-SHA512.
- **Smart-city access** (`geosentry.composite`, `geosentry.smart_access`).
  `CompositeVerifier` checks location, time of day, behavioural risk and device
  trust against a policy. `smart_access_verify` turns the outcome into an
  `AccessResponse`.

The package has no runtime dependencies.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Behaviour analysis

```python
import asyncio
from datetime import datetime, timezone

from geosentry.behavior import (
    BehaviorEngine,
    BehaviorInput,
    DefaultAnomalyDetector,
    DefaultBehavioralModel,
    NetworkInfo,
)

engine = BehaviorEngine(
    DefaultBehavioralModel(),
    DefaultAnomalyDetector(max_speed_kmh=1200.0),
    history_limit=10,
)

event = BehaviorInput(
    entity_id="user1",
    timestamp=datetime.now(timezone.utc),
    location=(40.7128, -74.0060),
    network_info=NetworkInfo(ip_address="192.0.2.10", is_vpn=False, connection_type="WiFi"),
    device_fingerprint="fingerprint_123",
)

result = asyncio.run(engine.process(event))
print(result.risk_level, result.anomaly_detected, result.reasoning)
```

### How `DefaultBehavioralModel` scores an event

The score starts at 0 and the following amounts are added. The score is capped
at 1.0.

| Condition | Added to the score |
|---|---|
| The event falls between 00:00 and 05:59 UTC | 0.3 |
| The event came through a VPN | 0.3 |
| The device fingerprint differs from the previous event's | 0.4 |
| There is no previous event | 0.1 |

`score_to_level` maps the score to a `RiskLevel`:

| Score | `RiskLevel` |
|---|---|
| 0.9 or more | `CRITICAL` |
| 0.7 or more | `HIGH` |
| 0.4 or more | `MEDIUM` |
| more than 0.1 | `LOW` |
| otherwise | `NONE` |

### How `DefaultAnomalyDetector` flags an event

`DefaultAnomalyDetector` measures the distance from the previous event with
`haversine_distance`. If the implied travel speed is above `max_speed_kmh`, it
reports the event as an impossible-travel anomaly.

### Dictionaries

`BehaviorInput.from_dict` and `to_dict` convert events to and from plain
dictionaries. Timestamps are ISO 8601 strings in UTC. Malformed data raises
`InvalidInputError`.

## Device fingerprints

```python
from geosentry.fingerprint import generate_adaptive_fingerprint

print(generate_adaptive_fingerprint("Windows 11", "Dell XPS", "desktop"))
```

`generate_adaptive_fingerprint` uses one shared engine, built from the default
components and `default_profiles()`. It returns the fingerprint as a JSON
string, or `None` if fingerprinting fails.

To use your own components, build the engine yourself:

```python
import asyncio

from geosentry.fingerprint import (
    AdaptiveFingerprintEngine,
    DefaultAiProcessor,
    DefaultQuantumEngine,
    DefaultSecurityMonitor,
    default_profiles,
)

engine = AdaptiveFingerprintEngine(
    DefaultSecurityMonitor(),
    DefaultQuantumEngine(),
    DefaultAiProcessor(),
    default_profiles(),
)
fp = asyncio.run(engine.generate_fingerprint("Windows 11", "Dell XPS", "desktop"))
print(fp.to_json())
```

### Environment types

The environment data is classified as one of `mobile`, `iot`, `server` or
`desktop`. `default_profiles()` only provides profiles for `mobile` and
`desktop`. Any other environment raises `UnsupportedEnvironmentError` unless
you add a profile for it.

### Threat scanning

`DefaultSecurityMonitor` rejects an OS or device string that contains a known
threat name, such as `rootkit` or `memory_scrape`, by raising
`SecurityThreatError`.

`update_threat_database` adds more threat names. It takes entries of the form
`name` or `name=level`, separated by commas or newlines.

### The key

`DefaultQuantumEngine` draws a 64-byte key from `os.urandom` each time it is
created. Fingerprints made by different engine instances therefore differ.

## Cross-validation

`CrossValidationEngine` takes five arguments:

- a `GeoResolver`;
- an `AdaptiveFingerprintEngine`;
- a `BehaviorEngine`;
- a `ScoringStrategy`, such as `DefaultScoringStrategy(location_weight, fingerprint_weight, behavior_weight)`;
- a signing key given as bytes.

`validate()` takes a `CrossValidationInput` and returns a `ValidationResult`.
The result holds:

- the final trust score;
- whether it is trusted, which means a score of 0.7 or more;
- the evidence from each engine;
- a Unix timestamp;
- a hex HMAC-SHA512 signature. It is computed over the compact JSON of
  `to_dict()` with the signature field left empty.

A failure in any engine is raised as a subclass of `CrossValidationError`:
`GeoResolutionError`, `FingerprintFailedError`, `BehaviorAnalysisError` or
`SignatureError`.

### Providing a `GeoResolver`

`GeoResolver` is an abstract class. You supply the implementation. Its
`resolve(ip_address, gps_data)` must return a JSON-serialisable mapping with a
numeric `confidence` from 0 to 100, and optionally a `city`:

```python
from geosentry.cross_validation import GeoResolver

class FixedResolver(GeoResolver):
    async def resolve(self, ip_address, gps_data):
        return {"city": "Riyadh", "confidence": 90}
```

## Smart-city access

`CompositeVerifier(geo, behavior, device_fp)` has a method
`verify_smart_access`. It returns `True` when every check passes. Otherwise it
raises `AccessDeniedError`, whose `reason` names the failed check. It raises
in any of these cases:

- the geo input is missing;
- the resolved location has no city;
- the resolved city is not in the allowed zones;
- the current UTC hour is outside the allowed window (the bounds count as inside);
- the behavioural risk level is `HIGH` or `CRITICAL`;
- the device's security level is below 5.

`smart_access_verify(verifier, request)` runs this check with a fixed policy:

- zones `Riyadh` and `Jeddah`;
- hours 6 to 18 UTC.

Build the request with `SmartAccessRequest.from_dict`. Malformed data raises
`InvalidInputError`. The function returns an `AccessResponse`:

| Outcome | `status` | `body` |
|---|---|---|
| Access granted | 200 | `"Access granted"` |
| Access denied | 403 | `"Access denied: "` followed by the reason |

## What the package does not do

- **No geolocation lookup.** It ships no IP-to-location database and no
  concrete `GeoResolver`. You must provide one.
- **No network service or HTTP server.** `smart_access_verify` produces a
  status and body but does not serve requests.
- **No authentication of callers.** Tokens and credentials are not checked.
- **No storage.** Behaviour history lives in memory for the lifetime of a
  `BehaviorEngine`, and nothing is persisted.
- **No command-line tool.**