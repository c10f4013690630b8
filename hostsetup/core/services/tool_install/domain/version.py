"""
L1 Domain — Version comparison (pure).

Parses ``MAJOR.MINOR[.PATCH...]`` strings into integer tuples and
decides whether an installed version meets a minimum.
No I/O, no subprocess.
"""

from __future__ import annotations

from typing import Literal

from hostsetup.core.errors import ParseError

Verdict = Literal["satisfied", "unsatisfied"]


def parse_version(text: str) -> tuple[int, ...]:
    """Split a version string into its numeric components.

    A single leading ``v`` is tolerated (``v1.2.3``). Anything else that
    is not a run of digits — empty components, suffixes like ``-rc1``,
    signs — raises ``ParseError``.

    >>> parse_version("1.21.6")
    (1, 21, 6)
    """
    raw = (text or "").strip()
    if raw[:1] in ("v", "V"):
        raw = raw[1:]
    if not raw:
        raise ParseError(f"Empty version string: {text!r}")

    parts: list[int] = []
    for component in raw.split("."):
        if not component.isascii() or not component.isdigit():
            raise ParseError(f"Non-numeric component {component!r} in version {text!r}")
        parts.append(int(component))
    return tuple(parts)


def _pad(a: tuple[int, ...], b: tuple[int, ...]) -> tuple[tuple[int, ...], tuple[int, ...]]:
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)), b + (0,) * (width - len(b))


def compare_versions(installed: str, minimum: str) -> Verdict:
    """Compare an installed version against an inclusive minimum.

    Missing trailing components count as 0, so ``1.18`` and ``1.18.0``
    are equal.

    Raises:
        ParseError: if either string has a non-numeric component.
    """
    have, need = _pad(parse_version(installed), parse_version(minimum))
    return "satisfied" if have >= need else "unsatisfied"


def is_newer(candidate: str, current: str) -> bool:
    """Whether ``candidate`` is strictly newer than ``current``."""
    a, b = _pad(parse_version(candidate), parse_version(current))
    return a > b
