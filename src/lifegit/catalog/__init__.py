"""Life-area catalog models and loader exports."""

from .loader import CatalogLoadError, LifeAreaLoader, load_catalog
from .models import DEFAULT_LIFE_AREAS, LifeArea, LifeAreaCatalog, default_catalog

__all__ = [
    "CatalogLoadError",
    "DEFAULT_LIFE_AREAS",
    "LifeArea",
    "LifeAreaCatalog",
    "LifeAreaLoader",
    "default_catalog",
    "load_catalog",
]
