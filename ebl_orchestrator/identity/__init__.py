"""
Identity layer: roles, persisted identities, provisioning and resolution.
"""

from ebl_orchestrator.identity.provisioner import (
    AccountProvisioner,
    ProvisionedAccount,
    ProvisioningReport,
)
from ebl_orchestrator.identity.resolver import (
    ExternalWalletIdentitySource,
    IdentitySource,
    LocalIdentitySource,
)
from ebl_orchestrator.identity.roles import (
    ALL_ROLES,
    Role,
    RoleCategory,
    RoleInfo,
    nickname,
    role_color,
    role_info,
    roles_in,
)
from ebl_orchestrator.identity.store import ActivePointer, Identity, IdentityStore

__all__ = [
    "ALL_ROLES",
    "AccountProvisioner",
    "ActivePointer",
    "ExternalWalletIdentitySource",
    "Identity",
    "IdentitySource",
    "IdentityStore",
    "LocalIdentitySource",
    "ProvisionedAccount",
    "ProvisioningReport",
    "Role",
    "RoleCategory",
    "RoleInfo",
    "nickname",
    "role_color",
    "role_info",
    "roles_in",
]
