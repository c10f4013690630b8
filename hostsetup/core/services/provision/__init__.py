"""Service and reverse-proxy provisioning."""

from hostsetup.core.services.provision.identity import (  # noqa: F401
    ensure_system_user,
    resolve_service_identity,
)
from hostsetup.core.services.provision.provisioner import (  # noqa: F401
    ProvisionResult,
    ServiceProvisioner,
)
from hostsetup.core.services.provision.templates import (  # noqa: F401
    render_caddyfile,
    render_unit,
)
