"""
Unit and proxy templates (pure).

Same input, same bytes: nothing here reads the clock, the environment
or the host.
"""

from __future__ import annotations

from hostsetup.core.models.service import ProxyRoute, ServiceSpec


def render_unit(spec: ServiceSpec) -> str:
    """Render a systemd unit file for ``spec``."""
    unit = [
        "[Unit]",
        f"Description={spec.description or spec.name}",
    ]
    if spec.documentation:
        unit.append(f"Documentation={spec.documentation}")
    unit += [
        "After=network.target network-online.target",
        "Requires=network-online.target",
        "",
        "[Service]",
        "Type=simple",
        f"User={spec.user}",
        f"Group={spec.group}",
        f"ExecStart={spec.exec_start}",
        f"Restart={spec.restart}",
    ]
    if spec.capabilities:
        unit.append(f"AmbientCapabilities={' '.join(spec.capabilities)}")
    unit += [
        "StandardOutput=journal",
        "StandardError=journal",
        f"SyslogIdentifier={spec.name}",
        "",
        "[Install]",
        "WantedBy=multi-user.target",
    ]
    return "\n".join(unit) + "\n"


def render_caddyfile(route: ProxyRoute) -> str:
    """Render a Caddyfile holding exactly one site block.

    The file is regenerated whole; site blocks added by hand are not
    carried over.
    """
    return (
        "# Managed by hostsetup. Regenerated on every run: other site blocks\n"
        "# in this file are not preserved (a backup is kept beside it).\n"
        f"{route.hostname} {{\n"
        f"\treverse_proxy {route.backend}\n"
        "}\n"
    )
