"""Gemini model catalog with a process-wide, time-bounded cache."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import httpx

from ..config import DeckSettings, get_settings

logger = logging.getLogger(__name__)

GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"
GENERATE_CONTENT_METHOD = "generateContent"

DEFAULT_GEMINI_MODELS: tuple[str, ...] = (
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
    "gemini-1.5-pro",
)


class ModelCatalogError(RuntimeError):
    """Raised when the remote catalog returns an unusable response."""


def parse_override(value: str) -> list[str]:
    """Split a comma-separated override into a trimmed, de-duplicated, sorted list."""

    return sorted({item.strip() for item in value.split(",") if item.strip()})


def extract_model_names(payload: Any) -> list[str]:
    """Keep models that support content generation, trimmed to their short names."""

    if not isinstance(payload, dict):
        raise ModelCatalogError("Model catalog response is not a JSON object")

    names: list[str] = []
    for model in payload.get("models") or []:
        if not isinstance(model, dict):
            continue
        methods = model.get("supportedGenerationMethods") or []
        if GENERATE_CONTENT_METHOD not in methods:
            continue
        name = str(model.get("name") or "")
        if name.startswith("models/"):
            name = name[len("models/"):]
        if name:
            names.append(name)
    return sorted(names)


class ModelCatalog:
    """Fetch the list of Gemini models a session can switch to.

    The override variable wins over everything and never touches the network.
    Without an API key the built-in defaults are returned. Fetched results are
    cached for ``model_cache_ttl_seconds``; concurrent callers on a cache miss
    wait on a single lock while the first one fetches.
    """

    def __init__(
        self,
        settings: DeckSettings | None = None,
        *,
        client_factory: Callable[[], httpx.Client] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client_factory = client_factory or (lambda: httpx.Client(timeout=10.0))
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._cache: list[str] = []
        self._fetched_at: float | None = None

    def available_models(self) -> list[str]:
        override = self._settings.gemini_models_override
        if override:
            return parse_override(override)

        with self._lock:
            if self._is_fresh():
                return list(self._cache)

            api_key = self._settings.google_api_key
            if not api_key:
                return list(DEFAULT_GEMINI_MODELS)

            try:
                models = self._fetch(api_key)
            except (httpx.HTTPError, ModelCatalogError, ValueError) as exc:
                logger.warning(
                    "Failed to fetch Gemini models; using defaults",
                    extra={"error": str(exc)},
                )
                return list(DEFAULT_GEMINI_MODELS)

            self._cache = models
            self._fetched_at = self._clock()
            return list(models)

    def invalidate(self) -> None:
        with self._lock:
            self._cache = []
            self._fetched_at = None

    def _is_fresh(self) -> bool:
        if not self._cache or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self._settings.model_cache_ttl_seconds

    def _fetch(self, api_key: str) -> list[str]:
        with self._client_factory() as client:
            response = client.get(GEMINI_MODELS_URL, params={"key": api_key})
            response.raise_for_status()
            payload = response.json()
        models = extract_model_names(payload)
        logger.debug("Fetched Gemini models", extra={"count": len(models)})
        return models


_default_catalog: ModelCatalog | None = None
_default_catalog_lock = threading.Lock()


def get_default_catalog() -> ModelCatalog:
    """Return the process-wide catalog, creating it on first use."""

    global _default_catalog
    with _default_catalog_lock:
        if _default_catalog is None:
            _default_catalog = ModelCatalog(get_settings())
        return _default_catalog


def get_available_models() -> list[str]:
    return get_default_catalog().available_models()


__all__ = [
    "DEFAULT_GEMINI_MODELS",
    "GEMINI_MODELS_URL",
    "ModelCatalog",
    "ModelCatalogError",
    "extract_model_names",
    "get_available_models",
    "get_default_catalog",
    "parse_override",
]
