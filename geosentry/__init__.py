"""Behaviour analysis, BLAKE3 device fingerprints, signed cross-validation and smart-city access checks."""

__version__ = "1.0.0"
__all__ = [
    "behavior",
    "hashing",
    "fingerprint",
    "cross_validation",
    "composite",
    "smart_access",
]