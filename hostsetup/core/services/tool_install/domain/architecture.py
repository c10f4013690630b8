"""
L1 Domain — Architecture resolution (pure).

Maps what the OS reports (``platform.machine()``) onto the labels a
release channel uses in its artifact names.
"""

from __future__ import annotations

from hostsetup.core.errors import UnsupportedArchitecture
from hostsetup.core.services.tool_install.data.constants import _IARCH_MAP


def resolve_architecture(
    machine: str,
    arch_map: dict[str, str] | None = None,
) -> str:
    """Resolve a raw machine identifier to a release-channel label.

    Args:
        machine: Raw identifier, e.g. ``"x86_64"`` or ``"aarch64"``.
        arch_map: Optional vendor override applied to the canonical
            label, e.g. ``{"amd64": "x86_64"}`` for channels that name
            assets after ``uname -m``.

    Raises:
        UnsupportedArchitecture: for anything outside amd64/arm64.
    """
    canonical = _IARCH_MAP.get(machine.strip())
    if canonical is None:
        raise UnsupportedArchitecture(machine)
    if arch_map:
        return arch_map.get(canonical, canonical)
    return canonical
