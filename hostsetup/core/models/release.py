"""
Release models — metadata fetched from a release channel.

Fetched fresh every run and frozen once built.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Asset(BaseModel):
    """A single downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    size: int = 0
    checksum: str | None = None    # "sha256:<hex>"


class ReleaseMetadata(BaseModel):
    """A published release: its tag and ordered assets.

    ``advisory`` is set when the upstream omitted the tag and the
    literal ``"latest"`` stands in for it. Such a tag is not a version
    and must never be compared or spliced into asset names.
    """

    model_config = ConfigDict(frozen=True)

    tag: str
    assets: tuple[Asset, ...] = Field(default_factory=tuple)
    advisory: bool = False

    @property
    def version(self) -> str | None:
        """The tag without its ``v`` prefix, or None for an advisory tag."""
        if self.advisory:
            return None
        return self.tag[1:] if self.tag.startswith("v") else self.tag

    @property
    def asset_names(self) -> list[str]:
        return [a.name for a in self.assets]


class InstalledBinary(BaseModel):
    """Result of placing an artifact at its target path."""

    path: str
    asset: str
    probe_ok: bool = False
    probe_output: str = ""
