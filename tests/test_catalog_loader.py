from __future__ import annotations

from pathlib import Path

import pytest

from lifegit.catalog import CatalogLoadError, LifeAreaLoader, default_catalog, load_catalog


def write_area(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_loader_overrides_with_later_paths(tmp_path: Path) -> None:
    base = tmp_path / "base"
    override = tmp_path / "override"
    base.mkdir()
    override.mkdir()

    write_area(
        base / "music.yml",
        """
id: music
title: Music
keywords: [piano, guitar]
""",
    )
    write_area(
        override / "music.yaml",
        """
id: music
title: Music and performance
keywords:
  - piano
  - concert
""",
    )

    loader = LifeAreaLoader([base, override, tmp_path / "missing"])
    areas = loader.load_all()

    assert loader.search_paths == [base, override]
    assert areas["music"].title == "Music and performance"
    assert areas["music"].keywords == ["piano", "concert"]


def test_loader_accepts_lists_of_areas(tmp_path: Path) -> None:
    write_area(
        tmp_path / "areas.yml",
        """
- id: garden
  title: Gardening
  keywords: [garden, tomatoes]
- id: travel
  title: Travel
""",
    )

    areas = LifeAreaLoader([tmp_path]).load_all()

    assert set(areas) == {"garden", "travel"}
    assert areas["travel"].keywords == []


def test_invalid_area_raises(tmp_path: Path) -> None:
    write_area(tmp_path / "broken.yml", "id: '   '\ntitle: Nothing\n")

    with pytest.raises(CatalogLoadError) as excinfo:
        LifeAreaLoader([tmp_path]).load_all()

    assert "broken.yml" in str(excinfo.value)


def test_load_catalog_merges_defaults(tmp_path: Path) -> None:
    write_area(
        tmp_path / "health.yml",
        """
id: health
title: Body and mind
keywords: [yoga]
""",
    )
    write_area(tmp_path / "garden.yml", "id: garden\ntitle: Gardening\nkeywords: [tomatoes]\n")

    catalog = load_catalog([tmp_path])
    ids = [area.id for area in catalog.areas]

    assert ids.count("health") == 1
    assert "garden" in ids
    assert catalog.matching_area("Morning yoga").title == "Body and mind"
    assert catalog.matches("Plant tomatoes")


def test_default_catalog_keyword_matching() -> None:
    catalog = default_catalog()

    assert catalog.matches("学英语", "每天学习30分钟")
    assert catalog.matching_area("职业规划").id == "career"
    assert catalog.matches("Train for a MARATHON")
    assert not catalog.matches("Plant tomatoes")
    assert load_catalog(None).areas == catalog.areas


def test_english_keywords_match_whole_words() -> None:
    catalog = default_catalog()

    assert catalog.matching_area("Bake bread", "for example sourdough") is None
    assert not catalog.matches("Lifesaving refresher for the inhabitants")
    assert catalog.matching_area("Start investing").id == "finance"
    assert catalog.matching_area("Build better habits").id == "growth"
    assert catalog.matching_area("Pass three exams").id == "education"
    assert catalog.matching_area("准备考试").id == "education"
