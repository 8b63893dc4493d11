"""Model catalogs for agent tools."""

from .gemini import (
    DEFAULT_GEMINI_MODELS,
    GEMINI_MODELS_URL,
    ModelCatalog,
    ModelCatalogError,
    extract_model_names,
    get_available_models,
    get_default_catalog,
    parse_override,
)

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
