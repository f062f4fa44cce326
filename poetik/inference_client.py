"""Async inference client for OpenAI-compatible endpoints (OpenAI or LiteLLM proxy)."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Optional

import numpy as np
from openai import AsyncOpenAI

from poetik.collaborators import (
    Collaborators,
    EmbeddingProvider,
    EntityRecognizer,
    MorphologyTagger,
    PosTagger,
    SentimentClassifier,
)
from poetik.config import PipelineConfig
from poetik.errors import CollaboratorError
from poetik.prompts import (
    build_morphology_messages,
    build_ner_messages,
    build_pos_messages,
    build_sentiment_messages,
)

logger = logging.getLogger("poetik")

_cache_dir = Path(__file__).resolve().parent.parent / "workspace" / "cache"

_ANTHROPIC_PREFIXES = ("claude", "anthropic")


def _cache_key(kind: str, model: str, payload: Any) -> str:
    blob = json.dumps({"kind": kind, "model": model, "payload": payload},
                      sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(blob.encode()).hexdigest()


def _is_anthropic_model(model: str) -> bool:
    lower = model.lower()
    return any(lower.startswith(p) for p in _ANTHROPIC_PREFIXES)


def extract_json(text: str) -> str:
    """
    Extract JSON from a model response that may carry markdown fences
    or preamble/postscript text.
    """
    if not text or not text.strip():
        return text

    stripped = text.strip()
    try:
        json.loads(stripped)
        return stripped
    except json.JSONDecodeError:
        pass

    m = re.search(r'```(?:json)?\s*\n(.*?)\n\s*```', text, re.DOTALL)
    if m:
        candidate = m.group(1).strip()
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    start = text.find('{')
    end = text.rfind('}')
    if 0 <= start < end:
        candidate = text[start:end + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    return text


def unit_normalize(vector: list[float]) -> list[float]:
    arr = np.asarray(vector, dtype=float)
    norm = np.linalg.norm(arr)
    if norm < 1e-8:
        return arr.tolist()
    return (arr / norm).tolist()


class InferenceClient:
    """Shared async client for chat (JSON) and embedding calls."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self._client: Optional[AsyncOpenAI] = None
        self._call_log: list[dict] = []

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            mcfg = self.config.models
            if self.config.provider == "litellm":
                self._client = AsyncOpenAI(
                    base_url=self.config.litellm.base_url,
                    api_key=self.config.litellm.api_key or "sk-placeholder",
                    timeout=mcfg.timeout,
                )
            else:
                self._client = AsyncOpenAI(
                    api_key=self.config.openai_api_key,
                    timeout=mcfg.timeout,
                )
        return self._client

    async def _with_retries(self, task: str, call):
        """Await ``call()`` with exponential backoff; raise CollaboratorError at the end."""
        retries = self.config.models.retries
        last_err: Optional[Exception] = None
        for attempt in range(retries + 1):
            t0 = time.monotonic()
            try:
                result = await call()
                dur = (time.monotonic() - t0) * 1000
                self._call_log.append({"task": task, "attempt": attempt, "duration_ms": round(dur, 1)})
                logger.debug("%s call ok (attempt %d, %.0fms)", task, attempt + 1, dur)
                return result
            except Exception as e:
                last_err = e
                logger.warning(
                    "%s call attempt %d/%d failed: %s", task, attempt + 1, retries + 1, e
                )
                if attempt < retries:
                    await asyncio.sleep(2 ** attempt)
        raise CollaboratorError(task, f"failed after {retries + 1} attempts: {last_err}")

    async def chat_json(self, task: str, messages: list[dict[str, str]]) -> dict:
        """Chat completion parsed as a JSON object."""
        mcfg = self.config.models
        ck = _cache_key(task, mcfg.chat_model, messages)
        if self.config.enable_response_cache:
            cached = self._read_cache(ck)
            if cached is not None:
                return json.loads(cached)

        kwargs: dict[str, Any] = {
            "model": mcfg.chat_model,
            "messages": messages,
            "temperature": mcfg.temperature,
        }
        if not _is_anthropic_model(mcfg.chat_model):
            kwargs["response_format"] = {"type": "json_object"}

        async def call():
            resp = await self._get_client().chat.completions.create(**kwargs)
            return resp.choices[0].message.content or ""

        raw_text = await self._with_retries(task, call)
        text = extract_json(raw_text)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CollaboratorError(task, f"response is not JSON: {e}") from e

        if self.config.enable_response_cache:
            self._write_cache(ck, text)
        return data

    async def embed(self, text: str) -> list[float]:
        mcfg = self.config.models
        ck = _cache_key("embeddings", mcfg.embedding_model, text)
        if self.config.enable_response_cache:
            cached = self._read_cache(ck)
            if cached is not None:
                return json.loads(cached)

        async def call():
            resp = await self._get_client().embeddings.create(
                model=mcfg.embedding_model,
                input=text,
            )
            return list(resp.data[0].embedding)

        vector = unit_normalize(await self._with_retries("embeddings", call))
        if self.config.enable_response_cache:
            self._write_cache(ck, json.dumps(vector))
        return vector

    @property
    def call_log(self) -> list[dict]:
        return list(self._call_log)

    @staticmethod
    def _read_cache(key: str) -> Optional[str]:
        p = _cache_dir / f"{key}.txt"
        if p.exists():
            return p.read_text(encoding="utf-8")
        return None

    @staticmethod
    def _write_cache(key: str, text: str) -> None:
        _cache_dir.mkdir(parents=True, exist_ok=True)
        p = _cache_dir / f"{key}.txt"
        p.write_text(text, encoding="utf-8")


# ── Providers ────────────────────────────────────────────────────────────

class OpenAISentimentClassifier(SentimentClassifier):
    def __init__(self, client: InferenceClient):
        self.client = client

    async def classify(self, text: str) -> dict:
        return await self.client.chat_json("sentiment", build_sentiment_messages(text))


class OpenAIEntityRecognizer(EntityRecognizer):
    def __init__(self, client: InferenceClient):
        self.client = client

    async def recognize(self, text: str) -> list[dict]:
        data = await self.client.chat_json("ner", build_ner_messages(text))
        return data.get("entities", [])


class OpenAIPosTagger(PosTagger):
    def __init__(self, client: InferenceClient):
        self.client = client

    async def tag(self, text: str) -> list[dict]:
        data = await self.client.chat_json("pos", build_pos_messages(text))
        return data.get("tokens", [])


class OpenAIMorphologyTagger(MorphologyTagger):
    def __init__(self, client: InferenceClient):
        self.client = client

    async def analyze(self, text: str) -> list[dict]:
        data = await self.client.chat_json("morphology", build_morphology_messages(text))
        return data.get("tokens", [])


class OpenAIEmbeddingProvider(EmbeddingProvider):
    def __init__(self, client: InferenceClient):
        self.client = client

    async def embed(self, text: str) -> list[float]:
        return await self.client.embed(text)


def build_collaborators(config: PipelineConfig) -> Collaborators:
    """Providers for the configured endpoint, or none when inference is off."""
    if not config.inference_configured:
        logger.info("No inference provider configured; rule-based analysis only")
        return Collaborators()

    client = InferenceClient(config)
    logger.info(
        "Inference provider: %s (chat=%s, embeddings=%s)",
        config.provider, config.models.chat_model, config.models.embedding_model,
    )
    return Collaborators(
        sentiment=OpenAISentimentClassifier(client),
        ner=OpenAIEntityRecognizer(client),
        pos=OpenAIPosTagger(client),
        embeddings=OpenAIEmbeddingProvider(client),
        morphology=OpenAIMorphologyTagger(client),
        client=client,
    )
