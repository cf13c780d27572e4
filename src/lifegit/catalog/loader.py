"""Life-area catalog loading utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import yaml
from pydantic import ValidationError

from .models import LifeArea, LifeAreaCatalog, default_catalog


class CatalogLoadError(RuntimeError):
    """Raised when one or more life-area files cannot be parsed."""


class LifeAreaLoader:
    """Loads life areas from YAML files on disk.

    A file holds either a single area mapping or a list of them.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        paths = [Path(path) for path in (search_paths or [])]
        self._search_paths: list[Path] = [path for path in paths if path.exists()]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load_all(self) -> dict[str, LifeArea]:
        """Load areas from all configured search paths.

        Later search paths override earlier ones when area ids collide.
        """

        if not self._search_paths:
            return {}

        areas: dict[str, LifeArea] = {}
        errors: list[str] = []

        for base in self._search_paths:
            for path in sorted(base.glob("*.yml")) + sorted(base.glob("*.yaml")):
                try:
                    document = yaml.safe_load(path.read_text(encoding="utf-8"))
                except yaml.YAMLError as exc:  # pragma: no cover - library type
                    errors.append(f"Failed to parse YAML in {path}: {exc}")
                    continue

                if document is None:
                    continue

                entries = document if isinstance(document, list) else [document]
                for entry in entries:
                    try:
                        area = LifeArea.model_validate(entry)
                    except ValidationError as exc:
                        errors.append(f"Life area validation error in {path}: {exc}")
                        continue
                    areas[area.id] = area

        if errors:
            raise CatalogLoadError("; ".join(errors))

        return areas


def load_catalog(search_paths: Iterable[Path] | None = None) -> LifeAreaCatalog:
    """Return the default catalog with any areas found on disk merged over it."""

    loader = LifeAreaLoader(search_paths)
    return default_catalog().merged_with(loader.load_all().values())


__all__ = ["CatalogLoadError", "LifeAreaLoader", "load_catalog"]
