"""
Regular-expression arguments for the Document match helpers.

Callers may pass a RawPattern, a CompiledPattern, a plain str or an
re.Pattern.  normalize_pattern() turns any of them into a compiled pattern
once, at the call boundary.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Union

from .exceptions import PatternError


@dataclass(frozen=True)
class RawPattern:
    source: str
    flags: int = 0


@dataclass(frozen=True)
class CompiledPattern:
    pattern: re.Pattern


PatternLike = Union[RawPattern, CompiledPattern, str, re.Pattern]


@lru_cache(maxsize=256)
def _compile(source: str, flags: int) -> re.Pattern:
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise PatternError(f"Invalid pattern {source!r}: {e}", pattern=source) from e


def normalize_pattern(pattern: PatternLike) -> re.Pattern:
    """
    Compile `pattern` if needed.

    Raises:
        PatternError: a string pattern does not compile
        TypeError: `pattern` is none of the accepted forms
    """
    if isinstance(pattern, CompiledPattern):
        return pattern.pattern
    if isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, RawPattern):
        return _compile(pattern.source, pattern.flags)
    if isinstance(pattern, str):
        return _compile(pattern, 0)
    raise TypeError(f"Expected a pattern, got {type(pattern).__name__}")
