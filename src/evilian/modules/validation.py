"""Operator input validation.

Checks the allowed source range, the project name and the optional
region/size/image overrides before any remote call is made.

Philosophy:
- Syntactic checks only: Azure decides whether a region or SKU exists
- Fail fast with no side effects
- Zero dependencies on Azure-facing modules

Public API:
    ProvisioningRequest: Validated operator request
    InputValidator: Builds a ProvisioningRequest from raw input
    validate_allowed_range: Dotted-quad with optional /0-/32 suffix
    validate_project_name: Lower-cased [a-z0-9-]+
"""

import re
from dataclasses import dataclass

from evilian.config_manager import EvilianConfig
from evilian.exceptions import InvalidName, InvalidRange, ValidationError

# Octet values are not range-checked
ALLOWED_RANGE_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+(/([0-9]|[1-2][0-9]|3[0-2]))?$")
PROJECT_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")
OVERRIDE_PATTERN = re.compile(r"^[A-Za-z0-9_.:\-]+$")


@dataclass(frozen=True)
class ProvisioningRequest:
    """Validated operator request for a single run."""

    allowed_range: str
    project_name: str
    region: str
    vm_size: str
    image_reference: str


def validate_allowed_range(value: str | None) -> str:
    """Validate the operator's allowed source range.

    Args:
        value: IP address or CIDR, e.g. "203.0.113.5/32"

    Returns:
        The range unchanged

    Raises:
        InvalidRange: If the value does not match the dotted-quad grammar

    Example:
        >>> validate_allowed_range("203.0.113.5/32")
        '203.0.113.5/32'
    """
    if not value or not ALLOWED_RANGE_PATTERN.match(value):
        raise InvalidRange(f"Invalid IP/CIDR provided: {value!r}")
    return value


def validate_project_name(value: str | None) -> str:
    """Normalize and validate the project name.

    Uppercase letters are accepted and folded to lowercase.

    Raises:
        InvalidName: If the name is empty or contains other characters

    Example:
        >>> validate_project_name("Evil123")
        'evil123'
    """
    if value is None or value == "":
        raise InvalidName("Project name cannot be empty.")

    normalized = value.lower()
    if not PROJECT_NAME_PATTERN.match(normalized):
        raise InvalidName("Project name must contain only letters, numbers, or hyphens.")
    return normalized


def validate_override(value: str, field_name: str) -> str:
    """Validate a region, VM size or image override.

    Image URNs contain colons (Publisher:Offer:Sku:Version), so the allowed
    alphabet is letters, digits and ``_ . : -``.
    """
    if not value or not OVERRIDE_PATTERN.match(value):
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    return value


class InputValidator:
    """Build a ProvisioningRequest from raw operator input."""

    def __init__(self, defaults: EvilianConfig | None = None):
        self.defaults = defaults or EvilianConfig()

    def build_request(
        self,
        allowed_range: str | None,
        project_name: str | None,
        region: str | None = None,
        vm_size: str | None = None,
        image_reference: str | None = None,
    ) -> ProvisioningRequest:
        """Validate everything and return the request.

        Raises:
            InvalidRange: Bad allowed range
            InvalidName: Bad project name
            ValidationError: Bad override
        """
        return ProvisioningRequest(
            allowed_range=validate_allowed_range(allowed_range),
            project_name=validate_project_name(project_name),
            region=validate_override(region or self.defaults.region, "region"),
            vm_size=validate_override(vm_size or self.defaults.vm_size, "VM size"),
            image_reference=validate_override(
                image_reference or self.defaults.image, "image reference"
            ),
        )


__all__ = [
    "InputValidator",
    "ProvisioningRequest",
    "validate_allowed_range",
    "validate_override",
    "validate_project_name",
]
