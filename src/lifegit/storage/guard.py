"""Wrap repository failures in the core error taxonomy."""

from __future__ import annotations

from typing import Awaitable, TypeVar

from ..errors import LifeGitError, PersistenceError

T = TypeVar("T")


async def persist(operation: str, entity: str, awaitable: Awaitable[T]) -> T:
    """Await a repository call, re-raising storage failures as :class:`PersistenceError`."""

    try:
        return await awaitable
    except LifeGitError:
        raise
    except Exception as exc:
        raise PersistenceError(operation, entity, exc) from exc


__all__ = ["persist"]
