"""
L0 Data — Built-in dependency recipes.

Each recipe is a plain dict validated into a ``Dependency`` at load
time. Order matters: the pipeline walks them top to bottom and the
application binary comes after the runtimes it needs.
"""

from __future__ import annotations

from hostsetup.core.models.dependency import Dependency

GO_VERSION = "1.21.6"
GO_MINIMUM = "1.18"

CADDY_REPO = {
    "key_url": "https://dl.cloudsmith.io/public/caddy/stable/gpg.key",
    "keyring": "/usr/share/keyrings/caddy-stable-archive-keyring.gpg",
    "list_url": "https://dl.cloudsmith.io/public/caddy/stable/debian.deb.txt",
    "list_path": "/etc/apt/sources.list.d/caddy-stable.list",
    "prerequisites": [
        "debian-keyring",
        "debian-archive-keyring",
        "apt-transport-https",
        "gnupg",
    ],
}

TOOL_RECIPES: list[dict] = [
    {
        "name": "go",
        "probe": ["go", "version"],
        "version_pattern": r"go(\d+(?:\.\d+)+)",
        "minimum_version": GO_MINIMUM,
        "strategy": "direct-download",
        "url": "https://dl.google.com/go/go{version}.linux-{arch}.tar.gz",
        "version": GO_VERSION,
        "binary_path": "/usr/local/go/bin/go",
        "install_dir": "/usr/local/go",
        "archive_root": "go",
        "liveness": ["version"],
        "profile_script": "/etc/profile.d/golang.sh",
        "profile_env": {"GOPATH": "$HOME/go"},
        "path_entries": ["/usr/local/go/bin", "$GOPATH/bin"],
    },
    {
        "name": "wp-cli",
        # wp refuses to run as root without --allow-root
        "probe": ["wp", "cli", "version", "--allow-root"],
        "version_pattern": r"WP-CLI\s+(\d+(?:\.\d+)+)",
        "strategy": "direct-download",
        "url": "https://raw.githubusercontent.com/wp-cli/builds/gh-pages/phar/wp-cli.phar",
        "binary_path": "/usr/local/bin/wp",
        "liveness": ["cli", "version", "--allow-root"],
    },
    {
        "name": "git",
        "probe": ["git", "--version"],
        "version_pattern": r"git version\s+(\d+(?:\.\d+)+)",
        "strategy": "package-manager",
        "package": "git",
        "required": False,
    },
    {
        "name": "jq",
        "probe": ["jq", "--version"],
        "version_pattern": r"jq-(\d+(?:\.\d+)+)",
        "strategy": "package-manager",
        "package": "jq",
        "required": False,
    },
    {
        "name": "captaincore",
        "probe": ["captaincore", "version"],
        "strategy": "release-artifact",
        "repository": "CaptainCore/captaincore",
        "asset_name": "captaincore",
        "binary_path": "/usr/local/bin/captaincore",
        "track_latest": True,
        "liveness": ["version"],
    },
    {
        "name": "caddy",
        "probe": ["caddy", "version"],
        "version_pattern": r"v(\d+(?:\.\d+)+)",
        "strategy": "package-manager",
        "package": "caddy",
        "apt_repository": CADDY_REPO,
        "required": False,
    },
]


def default_dependencies() -> list[Dependency]:
    """Validate the built-in recipes into fresh ``Dependency`` objects."""
    return [Dependency.model_validate(r) for r in TOOL_RECIPES]
