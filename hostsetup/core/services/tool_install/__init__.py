"""
Dependency installation service — package re-exports.

Layers, innermost first (each imports only from the ones above it)::

    data → domain → detection → execution → orchestration
"""

# ── L0: Data ──
from hostsetup.core.services.tool_install.data.recipes import (  # noqa: F401
    TOOL_RECIPES,
    default_dependencies,
)

# ── L1: Domain ──
from hostsetup.core.services.tool_install.domain.architecture import (  # noqa: F401
    resolve_architecture,
)
from hostsetup.core.services.tool_install.domain.asset_patterns import (  # noqa: F401
    build_asset_patterns,
    select_asset,
)
from hostsetup.core.services.tool_install.domain.version import (  # noqa: F401
    compare_versions,
    parse_version,
)

# ── L3: Detection ──
from hostsetup.core.services.tool_install.detection.tool_version import (  # noqa: F401
    get_tool_version,
)

# ── L4: Execution ──
from hostsetup.core.services.tool_install.execution.artifact_installer import (  # noqa: F401
    ArtifactInstaller,
)
from hostsetup.core.services.tool_install.execution.release_locator import (  # noqa: F401
    ReleaseLocator,
)
from hostsetup.core.services.tool_install.execution.strategies import (  # noqa: F401
    InstallStrategies,
)

# ── L5: Orchestration ──
from hostsetup.core.services.tool_install.orchestration.pipeline import (  # noqa: F401
    DependencyOutcome,
    DependencyPipeline,
    PipelineReport,
)
