"""
Configuration — loads settings from .patchwise.yaml, environment variables,
and built-in defaults (in that priority order: env > YAML > defaults).
"""

from __future__ import annotations

import os

import yaml


_DEFAULTS = {
    # Matcher
    "anchored_threshold": 0.85,
    "relaxed_threshold": 0.60,
    "fuzzy_token_threshold": 0.70,
    "line_hint_agreement": 0.70,
    "line_hint_slack": 3,
    "max_anchors": 5,
    "max_candidate_windows": 64,
    "anchor_line_max_distance": 500,
    # Validator
    "truncation_min_chars": 100,
    "truncation_original_chars": 500,
    "size_ratio_min": 0.5,
    "size_ratio_max": 3.0,
    "extra_globals": [],
    # Cost policy
    "large_document_chars": 200_000,
    "small_edit_ratio": 0.02,
    # Syntax analyzer
    "parse_error_tolerance": 0.05,
    "parse_cache_size": 32,
    # Compressor
    "compression_min_lines": 80,
    "truncate_lines": 400,
    "data_summary_min_chars": 200,
    "max_hide_fraction": 0.5,
    # Intent classifier
    "classifier_cache_size": 256,
    # Self-repair
    "max_repair_retries": 2,
    "repair_max_source_chars": 3000,
    # Metrics / logs (CLI only)
    "metrics_dir": ".patchwise/metrics",
    "log_dir": ".patchwise/logs",
    # LLM collaborator
    "llm_base_url": "https://api.openai.com/v1",
    "llm_model": "gpt-4o-mini",
    "llm_api_key": "",
    "llm_max_retries": 3,
    "llm_retry_delay": 2.0,
}

# Config file search locations
_CONFIG_FILENAMES = [".patchwise.yaml", ".patchwise.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return []


class Config:
    """Engine configuration.

    Settings are resolved in priority order:
    1. Environment variables (``PATCHWISE_<KEY>``)
    2. .patchwise.yaml config file (flat keys, or grouped under
       ``matcher``/``validator``/``compression``/``repair``/``llm``)
    3. Built-in defaults

    The acceptance thresholds are heuristic tuning constants; retuning them
    does not change the cascade or the validation gates.
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = self._flatten(yaml_data or {})

        def _get(key: str, cast=str):
            env_val = os.getenv(f"PATCHWISE_{key.upper()}")
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(key)
            if yaml_val is not None:
                return cast(yaml_val)
            return _DEFAULTS[key]

        # Matcher
        self.ANCHORED_THRESHOLD = _get("anchored_threshold", float)
        self.RELAXED_THRESHOLD = _get("relaxed_threshold", float)
        self.FUZZY_TOKEN_THRESHOLD = _get("fuzzy_token_threshold", float)
        self.LINE_HINT_AGREEMENT = _get("line_hint_agreement", float)
        self.LINE_HINT_SLACK = _get("line_hint_slack", int)
        self.MAX_ANCHORS = _get("max_anchors", int)
        self.MAX_CANDIDATE_WINDOWS = _get("max_candidate_windows", int)
        self.ANCHOR_LINE_MAX_DISTANCE = _get("anchor_line_max_distance", int)

        # Validator
        self.TRUNCATION_MIN_CHARS = _get("truncation_min_chars", int)
        self.TRUNCATION_ORIGINAL_CHARS = _get("truncation_original_chars", int)
        self.SIZE_RATIO_MIN = _get("size_ratio_min", float)
        self.SIZE_RATIO_MAX = _get("size_ratio_max", float)
        self.EXTRA_GLOBALS: list[str] = _get("extra_globals", _as_list)

        # Cost policy
        self.LARGE_DOCUMENT_CHARS = _get("large_document_chars", int)
        self.SMALL_EDIT_RATIO = _get("small_edit_ratio", float)

        # Syntax analyzer
        self.PARSE_ERROR_TOLERANCE = _get("parse_error_tolerance", float)
        self.PARSE_CACHE_SIZE = _get("parse_cache_size", int)

        # Compressor
        self.COMPRESSION_MIN_LINES = _get("compression_min_lines", int)
        self.TRUNCATE_LINES = _get("truncate_lines", int)
        self.DATA_SUMMARY_MIN_CHARS = _get("data_summary_min_chars", int)
        self.MAX_HIDE_FRACTION = _get("max_hide_fraction", float)

        # Intent classifier
        self.CLASSIFIER_CACHE_SIZE = _get("classifier_cache_size", int)

        # Self-repair
        self.MAX_REPAIR_RETRIES = _get("max_repair_retries", int)
        self.REPAIR_MAX_SOURCE_CHARS = _get("repair_max_source_chars", int)

        # Metrics / logs
        self.METRICS_DIR = _get("metrics_dir")
        self.LOG_DIR = _get("log_dir")

        # LLM collaborator (OpenAI-compatible endpoint)
        self.LLM_BASE_URL = _get("llm_base_url")
        self.LLM_MODEL = _get("llm_model")
        self.LLM_API_KEY = _get("llm_api_key") or os.getenv("OPENAI_API_KEY", "")
        self.LLM_MAX_RETRIES = _get("llm_max_retries", int)
        self.LLM_RETRY_DELAY = _get("llm_retry_delay", float)

    @staticmethod
    def _flatten(yd: dict) -> dict:
        """Merge grouped sections into one flat mapping (grouped keys lose to flat ones)."""
        flat: dict = {}
        for section in ("matcher", "validator", "compression", "repair", "llm"):
            group = yd.get(section)
            if isinstance(group, dict):
                for key, value in group.items():
                    name = key if key in _DEFAULTS else f"{section}_{key}"
                    flat[name] = value
        for key, value in yd.items():
            if key in _DEFAULTS:
                flat[key] = value
        return flat

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
