"""Multisig configuration: fixed signer sets and user-editable ones."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from quick_multisig.features.signers.models import SignerDefinition, signer_from_dict
from quick_multisig.features.signers.validators import (
    calculate_total_weight,
    validate_signer,
)
from quick_multisig.shared.chain import DEFAULT_NETWORK, NETWORK_URLS
from quick_multisig.shared.errors import InvalidConfigError, MultisigError
from quick_multisig.shared.validation import ThresholdValidator

KNOWN_NETWORKS = tuple(NETWORK_URLS)

MODE_ALIASES = {"preconfigured": "fixed"}


class MultisigMode(Enum):
    FIXED = "fixed"
    DYNAMIC = "dynamic"


@dataclass
class MultisigConfig:
    """Signer set and threshold for a multisig account.

    In ``FIXED`` mode ``signers`` and ``threshold`` cannot change after
    initialization. In ``DYNAMIC`` mode ``signers`` seeds the editable list,
    ``threshold`` is the default threshold and ``storage_key`` names where
    the edited set is saved.
    """

    mode: MultisigMode
    threshold: int = 1
    signers: list[SignerDefinition] = field(default_factory=list)
    network: str = DEFAULT_NETWORK
    storage_key: str | None = None
    name: str | None = None

    @classmethod
    def fixed(
        cls,
        signers: list[SignerDefinition],
        threshold: int,
        network: str = DEFAULT_NETWORK,
        name: str | None = None,
    ) -> "MultisigConfig":
        return cls(
            mode=MultisigMode.FIXED,
            threshold=threshold,
            signers=list(signers),
            network=network,
            name=name,
        )

    @classmethod
    def dynamic(
        cls,
        storage_key: str | None = None,
        default_threshold: int = 1,
        network: str = DEFAULT_NETWORK,
        signers: list[SignerDefinition] | None = None,
        name: str | None = None,
    ) -> "MultisigConfig":
        return cls(
            mode=MultisigMode.DYNAMIC,
            threshold=default_threshold,
            signers=list(signers or []),
            network=network,
            storage_key=storage_key,
            name=name,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MultisigConfig":
        """Parse the authored config shape.

        Raises:
            InvalidConfigError: if the shape cannot be interpreted.
        """
        if not isinstance(data, dict):
            raise InvalidConfigError("Multisig config must be an object")

        raw_mode = data.get("mode")
        raw_mode = MODE_ALIASES.get(raw_mode, raw_mode)
        try:
            mode = MultisigMode(raw_mode)
        except ValueError:
            raise InvalidConfigError(
                f"Invalid mode '{data.get('mode')}'. Must be fixed or dynamic"
            ) from None

        raw_signers = data.get("signers", [])
        if not isinstance(raw_signers, list):
            raise InvalidConfigError("Multisig config signers must be a list")

        signers: list[SignerDefinition] = []
        problems: list[str] = []
        for index, raw in enumerate(raw_signers):
            try:
                signers.append(signer_from_dict(raw))
            except MultisigError as e:
                problems.append(f"Signer[{index}]: {e.message}")
        if problems:
            raise InvalidConfigError("Invalid multisig config: " + "; ".join(problems))

        threshold = data.get("threshold")
        if threshold is None and mode == MultisigMode.DYNAMIC:
            threshold = data.get("defaultThreshold")
        if threshold is None:
            threshold = 1

        return cls(
            mode=mode,
            threshold=threshold,
            signers=signers,
            network=data.get("network") or DEFAULT_NETWORK,
            storage_key=data.get("storageKey"),
            name=data.get("name"),
        )

    @classmethod
    def from_file(cls, path: Path | str) -> "MultisigConfig":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise InvalidConfigError(f"Failed to read multisig config {path}: {e}", e) from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "mode": self.mode.value,
            "threshold": self.threshold,
            "signers": [signer.to_dict() for signer in self.signers],
            "network": self.network,
        }
        if self.storage_key:
            data["storageKey"] = self.storage_key
        if self.name:
            data["name"] = self.name
        return data


def config_problems(config: MultisigConfig) -> list[str]:
    errors: list[str] = []

    if config.network not in KNOWN_NETWORKS:
        errors.append(
            f"Invalid network '{config.network}'. Must be {', '.join(KNOWN_NETWORKS)}"
        )

    for index, signer in enumerate(config.signers):
        errors.extend(validate_signer(signer, index))

    if config.mode == MultisigMode.FIXED:
        if not config.signers:
            errors.append("Fixed multisig config requires at least one signer")
        else:
            result = ThresholdValidator.validate(
                config.threshold, calculate_total_weight(config.signers)
            )
            if not result.is_valid:
                errors.append(result.error_message)
    elif config.signers:
        result = ThresholdValidator.validate(
            config.threshold, calculate_total_weight(config.signers)
        )
        if not result.is_valid:
            errors.append(result.error_message)
    else:
        threshold = config.threshold
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 1:
            errors.append(f"Default threshold must be a positive integer (got {threshold!r})")

    return errors


def validate_config(config: MultisigConfig) -> None:
    """Raise one :class:`InvalidConfigError` listing every problem."""
    errors = config_problems(config)
    if errors:
        raise InvalidConfigError("Invalid multisig config: " + "; ".join(errors))
