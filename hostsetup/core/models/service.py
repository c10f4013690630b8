"""
Service models — what gets handed to systemd and to the reverse proxy.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ServiceSpec(BaseModel):
    """A supervised background service.

    Rendering the same spec always produces the same unit file, so
    re-provisioning overwrites it with identical bytes.
    """

    name: str
    binary_path: str
    args: list[str] = Field(default_factory=list)
    user: str
    group: str
    description: str = ""
    documentation: str = ""
    capabilities: list[str] = Field(default_factory=lambda: ["CAP_NET_BIND_SERVICE"])
    restart: str = "always"

    @property
    def unit_name(self) -> str:
        return f"{self.name}.service"

    @property
    def exec_start(self) -> str:
        return " ".join([self.binary_path, *self.args])


class ProxyRoute(BaseModel):
    """One public hostname routed to one local backend."""

    hostname: str
    backend: str = "localhost:8000"
