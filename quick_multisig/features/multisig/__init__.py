"""Multisig configuration and coordination."""

from quick_multisig.features.multisig.config import (
    KNOWN_NETWORKS,
    MultisigConfig,
    MultisigMode,
    config_problems,
    validate_config,
)
from quick_multisig.features.multisig.service import (
    MultisigCoordinator,
    MultisigState,
    migrate_loaded_signer,
    with_derived_address,
)

__all__ = [
    "KNOWN_NETWORKS",
    "MultisigConfig",
    "MultisigMode",
    "config_problems",
    "validate_config",
    "MultisigCoordinator",
    "MultisigState",
    "migrate_loaded_signer",
    "with_derived_address",
]
