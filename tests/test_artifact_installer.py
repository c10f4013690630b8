"""
Tests for the artifact installer, apt wrapper and profile script.
"""

import hashlib

import pytest

from hostsetup.core.errors import InstallFailure, NetworkError, NotFound
from hostsetup.core.models.dependency import AptRepository
from hostsetup.core.models.release import Asset
from hostsetup.core.services.tool_install.execution.artifact_installer import ArtifactInstaller
from hostsetup.core.services.tool_install.execution.package_manager import AptPackageManager
from hostsetup.core.services.tool_install.execution.profile import ensure_profile_path
from tests.fakes import fail, make_tarball

URL = "https://example.test/captaincore"
TARGET = "/usr/local/bin/captaincore"


def _asset(name="captaincore", url=URL, checksum=None) -> Asset:
    return Asset(name=name, url=url, checksum=checksum)


class TestInstallBinary:
    def test_fresh_install(self, host, ctx, sandbox):
        host.files[URL] = "captaincore version 1.2.3"
        installed = ArtifactInstaller(ctx).install(_asset(), TARGET, liveness=["version"])

        dest = sandbox / "usr/local/bin/captaincore"
        assert dest.read_text() == "captaincore version 1.2.3"
        assert dest.stat().st_mode & 0o777 == 0o755
        assert installed.path == TARGET
        assert installed.probe_ok
        assert host.calls[-1] == [str(dest), "version"]

    def test_replaces_existing(self, host, ctx, sandbox):
        old = host.install_fake(TARGET, "captaincore version 1.0.0")
        host.files[URL] = "captaincore version 1.2.3"
        ArtifactInstaller(ctx).install(_asset(), TARGET)
        assert old.read_text() == "captaincore version 1.2.3"

    @pytest.mark.parametrize("error", [NetworkError("connection reset"), NotFound("404")])
    def test_failed_download_leaves_previous_binary(self, host, ctx, sandbox, error):
        old = host.install_fake(TARGET, "previous build")
        before = old.read_bytes()
        host.files[URL] = error

        with pytest.raises(type(error)):
            ArtifactInstaller(ctx).install(_asset(), TARGET)

        assert old.read_bytes() == before
        # no scratch directory left behind
        assert sorted(p.name for p in old.parent.iterdir()) == ["captaincore"]

    def test_checksum_mismatch_leaves_previous_binary(self, host, ctx):
        old = host.install_fake(TARGET, "previous build")
        host.files[URL] = "tampered"
        with pytest.raises(InstallFailure, match="Checksum"):
            ArtifactInstaller(ctx).install(_asset(checksum="sha256:" + "0" * 64), TARGET)
        assert old.read_text() == "previous build"

    def test_checksum_match(self, host, ctx, sandbox):
        host.files[URL] = "good"
        digest = hashlib.sha256(b"good").hexdigest()
        ArtifactInstaller(ctx).install(_asset(checksum=f"sha256:{digest}"), TARGET)
        assert (sandbox / "usr/local/bin/captaincore").read_text() == "good"

    @pytest.mark.parametrize("payload", ["", "<!DOCTYPE html><html>rate limited</html>"])
    def test_rejects_unusable_payload(self, host, ctx, sandbox, payload):
        host.files[URL] = payload
        with pytest.raises(InstallFailure):
            ArtifactInstaller(ctx).install(_asset(), TARGET)
        assert not (sandbox / "usr/local/bin/captaincore").exists()

    def test_extracts_member_from_archive(self, host, ctx, sandbox):
        url = "https://example.test/cc.tar.gz"
        host.files[url] = make_tarball({
            "README.md": "docs",
            "captaincore_1.2.3_linux_amd64/captaincore": "captaincore version 1.2.3",
        })
        ArtifactInstaller(ctx).install(
            _asset("captaincore_1.2.3_linux_amd64.tar.gz", url), TARGET, binary_name="captaincore",
        )
        assert (sandbox / "usr/local/bin/captaincore").read_text() == "captaincore version 1.2.3"

    def test_archive_without_member(self, host, ctx):
        url = "https://example.test/cc.tar.gz"
        host.files[url] = make_tarball({"other": "x"})
        with pytest.raises(InstallFailure, match="not found"):
            ArtifactInstaller(ctx).install(_asset("cc.tar.gz", url), TARGET)

    def test_failed_liveness_probe_is_not_fatal(self, host, ctx):
        host.files[URL] = "binary"
        host.on("captaincore", result=fail("unknown flag"))
        installed = ArtifactInstaller(ctx).install(_asset(), TARGET)
        assert not installed.probe_ok


class TestInstallTree:
    GO_URL = "https://dl.google.com/go/go1.21.6.linux-amd64.tar.gz"

    def _go_tarball(self, version: str) -> bytes:
        return make_tarball({
            "go/bin/go": f"go version go{version} linux/amd64",
            "go/VERSION": f"go{version}",
        })

    def test_swaps_whole_tree(self, host, ctx, sandbox):
        host.install_fake("/usr/local/go/bin/go", "go version go1.10.0 linux/amd64")
        host.install_fake("/usr/local/go/stale.txt", "from the old toolchain")
        host.files[self.GO_URL] = self._go_tarball("1.21.6")

        installed = ArtifactInstaller(ctx).install_tree(
            Asset(name="go1.21.6.linux-amd64.tar.gz", url=self.GO_URL),
            "/usr/local/go",
            archive_root="go",
            probe_binary="/usr/local/go/bin/go",
            liveness=["version"],
        )

        go_root = sandbox / "usr/local/go"
        assert (go_root / "VERSION").read_text() == "go1.21.6"
        assert not (go_root / "stale.txt").exists()
        assert installed.probe_ok
        assert "go1.21.6" in installed.probe_output
        assert sorted(p.name for p in go_root.parent.iterdir()) == ["go"]

    def test_failed_download_keeps_old_tree(self, host, ctx, sandbox):
        old = host.install_fake("/usr/local/go/bin/go", "go version go1.10.0 linux/amd64")
        host.files[self.GO_URL] = NetworkError("timed out")
        with pytest.raises(NetworkError):
            ArtifactInstaller(ctx).install_tree(
                Asset(name="go.tar.gz", url=self.GO_URL), "/usr/local/go", archive_root="go",
            )
        assert old.read_text() == "go version go1.10.0 linux/amd64"

    def test_missing_archive_root(self, host, ctx, sandbox):
        host.files[self.GO_URL] = make_tarball({"golang/bin/go": "x"})
        with pytest.raises(InstallFailure, match="top-level 'go'"):
            ArtifactInstaller(ctx).install_tree(
                Asset(name="go.tar.gz", url=self.GO_URL), "/usr/local/go", archive_root="go",
            )
        assert not (sandbox / "usr/local/go").exists()

    def test_not_a_tarball(self, host, ctx):
        host.files[self.GO_URL] = "<html>not found</html>"
        with pytest.raises(InstallFailure, match="not a tar archive"):
            ArtifactInstaller(ctx).install_tree(
                Asset(name="go.tar.gz", url=self.GO_URL), "/usr/local/go", archive_root="go",
            )


class TestAptPackageManager:
    def test_update_runs_once(self, host, ctx):
        apt = AptPackageManager(ctx)
        apt.ensure_packages("git")
        apt.ensure_packages("jq")
        assert host.commands("apt-get") == [
            ["apt-get", "update"],
            ["apt-get", "install", "-y", "git"],
            ["apt-get", "install", "-y", "jq"],
        ]

    def test_install_failure(self, host, ctx):
        host.on("apt-get", "install", result=fail("E: Unable to locate package nope"))
        with pytest.raises(InstallFailure, match="Unable to locate package"):
            AptPackageManager(ctx).ensure_packages("nope")

    def test_add_repository(self, host, ctx, sandbox):
        repo = AptRepository(
            key_url="https://example.test/gpg.key",
            keyring="/usr/share/keyrings/caddy.gpg",
            list_url="https://example.test/caddy.list",
            list_path="/etc/apt/sources.list.d/caddy.list",
            prerequisites=["gnupg"],
        )
        host.files[repo.key_url] = "-----BEGIN PGP PUBLIC KEY BLOCK-----"
        host.files[repo.list_url] = "deb https://example.test/caddy any-version main\n"

        apt = AptPackageManager(ctx)
        apt.add_repository(repo)
        apt.ensure_packages("caddy")

        assert (sandbox / "etc/apt/sources.list.d/caddy.list").read_text().startswith("deb ")
        gpg = host.commands("gpg")[0]
        assert str(sandbox / "usr/share/keyrings/caddy.gpg") in gpg
        # prerequisites first, then a fresh index for the new source
        assert host.commands("apt-get") == [
            ["apt-get", "update"],
            ["apt-get", "install", "-y", "gnupg"],
            ["apt-get", "update"],
            ["apt-get", "install", "-y", "caddy"],
        ]

    def test_existing_repository_skipped(self, host, ctx, sandbox):
        repo = AptRepository(
            key_url="https://example.test/gpg.key",
            keyring="/usr/share/keyrings/caddy.gpg",
            list_url="https://example.test/caddy.list",
            list_path="/etc/apt/sources.list.d/caddy.list",
        )
        host.install_fake(repo.keyring, "key")
        host.install_fake(repo.list_path, "deb x")
        AptPackageManager(ctx).add_repository(repo)
        assert host.downloads == []
        assert host.calls == []


class TestProfileScript:
    def test_written_once(self, ctx, sandbox):
        assert ensure_profile_path(ctx, "/etc/profile.d/golang.sh", ["/usr/local/go/bin"])
        script = sandbox / "etc/profile.d/golang.sh"
        assert 'export PATH="$PATH:/usr/local/go/bin"' in script.read_text()
        assert script.stat().st_mode & 0o777 == 0o644

        assert not ensure_profile_path(ctx, "/etc/profile.d/golang.sh", ["/usr/local/go/bin"])

    def test_gopath_exported_before_path(self, ctx, sandbox):
        ensure_profile_path(ctx, "/etc/profile.d/golang.sh", ["/usr/local/go/bin", "$GOPATH/bin"],
                            {"GOPATH": "$HOME/go"})
        lines = (sandbox / "etc/profile.d/golang.sh").read_text().splitlines()
        assert lines.index('export GOPATH="$HOME/go"') < lines.index('export PATH="$PATH:$GOPATH/bin"')

    def test_rewritten_when_variable_missing(self, ctx, sandbox):
        ensure_profile_path(ctx, "/etc/profile.d/golang.sh", ["/usr/local/go/bin"])
        assert ensure_profile_path(ctx, "/etc/profile.d/golang.sh", ["/usr/local/go/bin"],
                                   {"GOPATH": "$HOME/go"})
        assert "GOPATH" in (sandbox / "etc/profile.d/golang.sh").read_text()
