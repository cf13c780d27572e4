"""Life-area models used to recognise important goals."""

from __future__ import annotations

import re
from typing import Any, Iterable

from pydantic import BaseModel, Field, field_validator


def _keyword_in(keyword: str, haystack: str) -> bool:
    if not keyword.isascii():
        return keyword in haystack
    return re.search(rf"\b{re.escape(keyword)}(?:s|es|ed|ing)?\b", haystack) is not None


class LifeArea(BaseModel):
    """An area of life whose goals count as important milestones."""

    id: str = Field(..., description="Stable identifier for the life area.")
    title: str = Field(..., description="Display title for the area.")
    keywords: list[str] = Field(
        default_factory=list,
        description="Words that mark a goal name or description as belonging to this area.",
    )

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Life area id must not be empty")
        return normalized

    @field_validator("keywords", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):  # type: ignore[override]
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("Keywords must be a sequence of strings")

    def matches(self, text: str) -> bool:
        """Match ASCII keywords as whole words and other keywords as substrings.

        Whole-word matching accepts the plural and verb endings s, es, ed and
        ing, so "invest" matches "investing" but "exam" does not match
        "example". Scripts written without spaces, such as Chinese, have no
        word boundaries to anchor on.
        """

        haystack = text.lower()
        return any(_keyword_in(keyword.lower(), haystack) for keyword in self.keywords)


class LifeAreaCatalog(BaseModel):
    """The set of life areas consulted by the version evaluator."""

    areas: list[LifeArea] = Field(default_factory=list)

    def matches(self, *texts: str) -> bool:
        """Return True when any text mentions a keyword of any area (case-insensitive)."""

        return self.matching_area(*texts) is not None

    def matching_area(self, *texts: str) -> LifeArea | None:
        combined = " ".join(text for text in texts if text)
        return next((area for area in self.areas if area.matches(combined)), None)

    def merged_with(self, areas: Iterable[LifeArea]) -> "LifeAreaCatalog":
        """Return a catalog where ``areas`` replace existing areas with the same id."""

        by_id = {area.id: area for area in self.areas}
        for area in areas:
            by_id[area.id] = area
        return LifeAreaCatalog(areas=list(by_id.values()))


DEFAULT_LIFE_AREAS: tuple[LifeArea, ...] = (
    LifeArea(
        id="career",
        title="Career",
        keywords=["工作", "职业", "事业", "升职", "跳槽", "创业", "技能", "career", "job", "promotion", "startup"],
    ),
    LifeArea(
        id="education",
        title="Education",
        keywords=["学习", "考试", "证书", "课程", "培训", "读书", "研究", "study", "exam", "degree", "course"],
    ),
    LifeArea(
        id="health",
        title="Health",
        keywords=["健康", "运动", "健身", "减肥", "锻炼", "医疗", "养生", "health", "fitness", "workout", "marathon"],
    ),
    LifeArea(
        id="relationships",
        title="Relationships",
        keywords=["关系", "家庭", "朋友", "恋爱", "结婚", "社交", "沟通", "family", "friend", "marriage", "relationship"],
    ),
    LifeArea(
        id="finance",
        title="Finance",
        keywords=["理财", "投资", "存钱", "买房", "财务", "收入", "finance", "invest", "saving", "income"],
    ),
    LifeArea(
        id="growth",
        title="Personal growth",
        keywords=["成长", "习惯", "目标", "梦想", "人生", "价值观", "habit", "dream", "mindset", "growth"],
    ),
)


def default_catalog() -> LifeAreaCatalog:
    return LifeAreaCatalog(areas=list(DEFAULT_LIFE_AREAS))


__all__ = ["DEFAULT_LIFE_AREAS", "LifeArea", "LifeAreaCatalog", "default_catalog"]
