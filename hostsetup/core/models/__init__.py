"""Domain models — dependencies, releases, services."""

from hostsetup.core.models.dependency import (  # noqa: F401
    AptRepository,
    Dependency,
    DependencyState,
    InstallDecision,
    InstallStrategy,
)
from hostsetup.core.models.release import (  # noqa: F401
    Asset,
    InstalledBinary,
    ReleaseMetadata,
)
from hostsetup.core.models.service import ProxyRoute, ServiceSpec  # noqa: F401
