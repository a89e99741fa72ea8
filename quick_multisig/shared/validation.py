"""Input validation utilities for addresses, weights and thresholds."""

from dataclasses import dataclass
from typing import Any

SUI_ADDRESS_HEX_LENGTH = 64


@dataclass
class ValidationResult:
    is_valid: bool
    error_message: str | None = None
    normalized_value: Any = None


def normalize_sui_address(address: str) -> str:
    """Lowercase, ``0x``-prefix and left-pad an address to 32 bytes."""
    value = address.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    return "0x" + value.rjust(SUI_ADDRESS_HEX_LENGTH, "0")


class AddressValidator:
    @staticmethod
    def validate(value: str) -> ValidationResult:
        if not value or not isinstance(value, str) or not value.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Address is required",
            )

        raw = value.strip().lower()
        if not raw.startswith("0x"):
            return ValidationResult(
                is_valid=False,
                error_message="Address must start with '0x'",
            )

        hex_part = raw[2:]
        if not hex_part:
            return ValidationResult(
                is_valid=False,
                error_message="Address cannot be empty",
            )

        if len(hex_part) > SUI_ADDRESS_HEX_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=f"Address too long. Expected at most {SUI_ADDRESS_HEX_LENGTH} hex characters",
            )

        if not all(c in "0123456789abcdef" for c in hex_part):
            return ValidationResult(
                is_valid=False,
                error_message="Address contains invalid characters",
            )

        return ValidationResult(
            is_valid=True,
            normalized_value=normalize_sui_address(raw),
        )


class WeightValidator:
    MAX_WEIGHT = 255

    @staticmethod
    def validate(value: Any) -> ValidationResult:
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult(
                is_valid=False,
                error_message=f"Weight must be a positive integer (got {value!r})",
            )

        if value < 1:
            return ValidationResult(
                is_valid=False,
                error_message=f"Weight must be a positive integer (got {value})",
            )

        if value > WeightValidator.MAX_WEIGHT:
            return ValidationResult(
                is_valid=False,
                error_message=f"Weight cannot exceed {WeightValidator.MAX_WEIGHT} (got {value})",
            )

        return ValidationResult(is_valid=True, normalized_value=value)


class ThresholdValidator:
    @staticmethod
    def validate(threshold: Any, total_weight: int) -> ValidationResult:
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            return ValidationResult(
                is_valid=False,
                error_message=f"Threshold must be an integer (got {threshold!r})",
            )

        if threshold < 1:
            return ValidationResult(
                is_valid=False,
                error_message=f"Threshold must be at least 1 (got {threshold})",
            )

        if threshold > total_weight:
            return ValidationResult(
                is_valid=False,
                error_message=f"Threshold ({threshold}) cannot exceed total signer weight ({total_weight})",
            )

        return ValidationResult(is_valid=True, normalized_value=threshold)
