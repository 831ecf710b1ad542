"""Prompt-side compression — intent classification and structural skeletons."""

from .intent import (
    EditIntent, IntentProfile, IntentClassifier, Classification, PROFILES,
    classify, profile_for,
)
from .compressor import (
    StructuralCompressor, CompressionResult, CompressionStats, SkeletonNode, compress,
)

__all__ = [
    "EditIntent", "IntentProfile", "IntentClassifier", "Classification", "PROFILES",
    "classify", "profile_for",
    "StructuralCompressor", "CompressionResult", "CompressionStats", "SkeletonNode",
    "compress",
]
