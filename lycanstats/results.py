from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar, Union

from .models import Match

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unavailable:
    reason: str


ExtractorResult = Union[Ok[T], Unavailable]


def unwrap_or_none(result: "ExtractorResult[T]") -> Optional[T]:
    if isinstance(result, Ok):
        return result.value
    return None


def run_extractor(
    name: str,
    extractor: Callable[[List[Match]], "ExtractorResult[T]"],
    matches: List[Match],
) -> "ExtractorResult[T]":
    """
    Invoke one domain extractor and report its outcome.

    Extractors signal missing data by returning Unavailable. An unexpected
    error inside an extractor is turned into Unavailable here so the other
    gameplay axes still contribute to the run.
    """
    try:
        result = extractor(matches)
    except Exception as exc:
        logger.warning(f"{name} statistics failed: {exc}")
        return Unavailable(reason=f"{type(exc).__name__}: {exc}")
    if isinstance(result, Unavailable):
        logger.warning(f"{name} statistics not available: {result.reason}")
    return result
