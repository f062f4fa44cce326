"""Configuration management for poetik."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any


_SECRET_KEYS = {"api_key", "openai_api_key", "litellm_api_key"}


def redact(value: str, keep: int = 4) -> str:
    """Mask a secret string, keeping only last *keep* chars."""
    if not value or len(value) <= keep:
        return "***"
    return "*" * (len(value) - keep) + value[-keep:]


def redact_dict(d: dict, keys: set[str] | None = None) -> dict:
    """Return a shallow copy of *d* with secret fields masked."""
    keys = keys or _SECRET_KEYS
    out = {}
    for k, v in d.items():
        if isinstance(v, dict):
            out[k] = redact_dict(v, keys)
        elif k in keys and isinstance(v, str) and v:
            out[k] = redact(v)
        else:
            out[k] = v
    return out


@dataclass
class ModelConfig:
    """Model names per inference task on the OpenAI-compatible endpoint."""
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = 0.0
    timeout: int = 60
    retries: int = 2


@dataclass
class LiteLLMConfig:
    base_url: str = "http://localhost:4000"
    api_key: str = ""


@dataclass
class ThresholdConfig:
    """Empirical cut-offs. Tunable, not derived."""
    rhyme_similarity: float = 0.7
    similarity_medium: float = 0.5
    similarity_high: float = 0.8
    parallelism: float = 0.6
    thematic_shift: float = 0.5
    ner_min_score: float = 0.75


@dataclass
class ProcessingConfig:
    batch_size: int = 16
    context_window: int = 3
    semantic_window: int = 5
    min_word_length: int = 3
    repetition_min_length: int = 4
    rhyme_ending_length: int = 3
    max_semantic_fields: int = 10


@dataclass
class PipelineConfig:
    min_input_chars: int = 10
    max_input_chars: int = 10000
    min_letters: int = 3

    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    models: ModelConfig = field(default_factory=ModelConfig)

    provider: str = "openai"  # "openai" | "litellm"
    litellm: LiteLLMConfig = field(default_factory=LiteLLMConfig)
    openai_api_key: str = ""

    enable_inference: bool = True
    enable_cache: bool = True
    cache_size: int = 32
    enable_response_cache: bool = False
    store_runs: bool = False
    verbosity: int = 1
    redact_secrets: bool = True

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> "PipelineConfig":
        """Load config from JSON file, env vars, and optional overrides."""
        raw: dict[str, Any] = {}

        if config_path:
            p = Path(config_path)
            if p.exists():
                raw = json.loads(p.read_text(encoding="utf-8"))

        cfg = cls._from_dict(raw)

        env_key = os.getenv("OPENAI_API_KEY", "")
        if env_key and not cfg.openai_api_key:
            cfg.openai_api_key = env_key

        litellm_key = os.getenv("LITELLM_API_KEY", "")
        if litellm_key and not cfg.litellm.api_key:
            cfg.litellm.api_key = litellm_key

        litellm_url = os.getenv("LITELLM_BASE_URL", "")
        if litellm_url:
            cfg.litellm.base_url = litellm_url

        if overrides:
            cfg._apply_overrides(overrides)

        return cfg

    @classmethod
    def _from_dict(cls, d: dict[str, Any]) -> "PipelineConfig":
        cfg = cls()
        simple = {
            "min_input_chars", "max_input_chars", "min_letters", "provider",
            "enable_inference", "enable_cache", "cache_size",
            "enable_response_cache", "store_runs", "verbosity",
            "redact_secrets", "openai_api_key",
        }
        for k in simple:
            if k in d:
                setattr(cfg, k, d[k])

        cfg.thresholds = _merge(ThresholdConfig(), d.get("thresholds", {}))
        cfg.processing = _merge(ProcessingConfig(), d.get("processing", {}))
        cfg.models = _merge(ModelConfig(), d.get("models", {}))

        ll = d.get("litellm", {})
        if ll:
            cfg.litellm = LiteLLMConfig(
                base_url=ll.get("base_url", cfg.litellm.base_url),
                api_key=ll.get("api_key", cfg.litellm.api_key),
            )
        return cfg

    def _apply_overrides(self, ov: dict[str, Any]) -> None:
        for k, v in ov.items():
            if k in ("thresholds", "processing", "models") and isinstance(v, dict):
                _merge(getattr(self, k), v)
            elif hasattr(self, k) and not isinstance(v, dict):
                setattr(self, k, v)

    @property
    def inference_configured(self) -> bool:
        if not self.enable_inference:
            return False
        if self.provider == "litellm":
            return bool(self.litellm.base_url)
        return bool(self.openai_api_key)

    def to_dict(self, safe: bool = True) -> dict:
        d = {
            "min_input_chars": self.min_input_chars,
            "max_input_chars": self.max_input_chars,
            "min_letters": self.min_letters,
            "thresholds": asdict(self.thresholds),
            "processing": asdict(self.processing),
            "models": asdict(self.models),
            "provider": self.provider,
            "litellm": asdict(self.litellm),
            "openai_api_key": self.openai_api_key,
            "enable_inference": self.enable_inference,
            "enable_cache": self.enable_cache,
            "cache_size": self.cache_size,
            "enable_response_cache": self.enable_response_cache,
            "store_runs": self.store_runs,
            "verbosity": self.verbosity,
            "redact_secrets": self.redact_secrets,
        }
        if safe and self.redact_secrets:
            d = redact_dict(d)
        return d

    def to_json(self, safe: bool = True) -> str:
        return json.dumps(self.to_dict(safe=safe), indent=2, ensure_ascii=False)


def _merge(target: Any, values: dict[str, Any]) -> Any:
    """Copy known keys from *values* onto the dataclass *target*."""
    for k, v in values.items():
        if hasattr(target, k):
            setattr(target, k, v)
    return target
