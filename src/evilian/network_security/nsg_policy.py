"""Inbound firewall policy for the VM's network security group.

Builds the ordered rule set applied to every VM:

    200  AllowEvilianSSH          operator range  -> 22
    300  AllowCloudflareWebIPv4   trusted v4      -> 80, 443
    310  AllowCloudflareWebIPv6   trusted v6      -> 80, 443
    900  AllowTemporaryAll        *               -> *
    1000 DenyAllInbound           *               -> * (deny)

Priorities leave gaps so rules can be inserted by hand later, and the
temporary allow-all sits directly above the deny so it can be narrowed or
removed without reordering anything else.

Philosophy:
- Pure construction, no Azure calls (see nsg_manager for that)
- Fail-secure: the last rule is always deny-all
- Trusted ranges are data: built-in Cloudflare lists, optionally replaced
  from a YAML file

Public API:
    FirewallRule: One inbound rule
    build_rules: Build the five-rule set
    load_trusted_ranges: Load trusted ranges from YAML
    validate_rule_set: Check the ordering invariants
"""

import ipaddress
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from evilian.exceptions import ValidationError

logger = logging.getLogger(__name__)

ANY = "*"
ADMIN_PORT = "22"
WEB_PORTS = ("80", "443")

ADMIN_RULE_NAME = "AllowEvilianSSH"
TRUSTED_V4_RULE_NAME = "AllowCloudflareWebIPv4"
TRUSTED_V6_RULE_NAME = "AllowCloudflareWebIPv6"
TEMPORARY_RULE_NAME = "AllowTemporaryAll"
DENY_RULE_NAME = "DenyAllInbound"

CLOUDFLARE_IPV4_RANGES: tuple[str, ...] = (
    "103.21.244.0/22",
    "103.22.200.0/22",
    "103.31.4.0/22",
    "104.16.0.0/13",
    "104.24.0.0/14",
    "108.162.192.0/18",
    "131.0.72.0/22",
    "141.101.64.0/18",
    "162.158.0.0/15",
    "172.64.0.0/13",
    "173.245.48.0/20",
    "188.114.96.0/20",
    "190.93.240.0/20",
    "197.234.240.0/22",
    "198.41.128.0/17",
)

CLOUDFLARE_IPV6_RANGES: tuple[str, ...] = (
    "2400:cb00::/32",
    "2606:4700::/32",
    "2803:f800::/32",
    "2405:b500::/32",
    "2405:8100::/32",
    "2a06:98c0::/29",
    "2c0f:f248::/32",
)


class RuleSetError(ValidationError):
    """Raised when a rule set or trusted-range file is malformed."""


@dataclass(frozen=True)
class FirewallRule:
    """A single inbound NSG rule."""

    name: str
    priority: int
    access: str
    protocol: str
    source_ranges: tuple[str, ...]
    destination_ports: tuple[str, ...]
    direction: str = "Inbound"
    source_ports: tuple[str, ...] = field(default=(ANY,))
    destination_ranges: tuple[str, ...] = field(default=(ANY,))

    @property
    def is_deny_all(self) -> bool:
        return (
            self.access == "Deny"
            and self.protocol == ANY
            and self.source_ranges == (ANY,)
            and self.destination_ports == (ANY,)
        )

    @property
    def is_allow_all(self) -> bool:
        return (
            self.access == "Allow"
            and self.protocol == ANY
            and self.source_ranges == (ANY,)
            and self.destination_ports == (ANY,)
        )


@dataclass(frozen=True)
class TrustedRanges:
    """Trusted source ranges granted web access (IPv4 and IPv6 separately)."""

    ipv4: tuple[str, ...] = CLOUDFLARE_IPV4_RANGES
    ipv6: tuple[str, ...] = CLOUDFLARE_IPV6_RANGES


def build_rules(
    allowed_range: str,
    trusted_v4_ranges: tuple[str, ...] | list[str] = CLOUDFLARE_IPV4_RANGES,
    trusted_v6_ranges: tuple[str, ...] | list[str] = CLOUDFLARE_IPV6_RANGES,
) -> list[FirewallRule]:
    """Build the inbound rule set, ordered by ascending priority.

    An allowed range that overlaps a trusted range still gets its own rule;
    Azure evaluates rules first-match by priority.

    Args:
        allowed_range: Operator's validated source range
        trusted_v4_ranges: Trusted IPv4 ranges for ports 80/443
        trusted_v6_ranges: Trusted IPv6 ranges for ports 80/443

    Returns:
        Exactly five rules, deny-all last
    """
    rules = [
        FirewallRule(
            name=ADMIN_RULE_NAME,
            priority=200,
            access="Allow",
            protocol="Tcp",
            source_ranges=(allowed_range,),
            destination_ports=(ADMIN_PORT,),
        ),
        FirewallRule(
            name=TRUSTED_V4_RULE_NAME,
            priority=300,
            access="Allow",
            protocol="Tcp",
            source_ranges=tuple(trusted_v4_ranges),
            destination_ports=WEB_PORTS,
        ),
        FirewallRule(
            name=TRUSTED_V6_RULE_NAME,
            priority=310,
            access="Allow",
            protocol="Tcp",
            source_ranges=tuple(trusted_v6_ranges),
            destination_ports=WEB_PORTS,
        ),
        FirewallRule(
            name=TEMPORARY_RULE_NAME,
            priority=900,
            access="Allow",
            protocol=ANY,
            source_ranges=(ANY,),
            destination_ports=(ANY,),
        ),
        FirewallRule(
            name=DENY_RULE_NAME,
            priority=1000,
            access="Deny",
            protocol=ANY,
            source_ranges=(ANY,),
            destination_ports=(ANY,),
        ),
    ]
    return sorted(rules, key=lambda rule: rule.priority)


def validate_rule_set(rules: list[FirewallRule]) -> None:
    """Check the ordering invariants of a rule set.

    Raises:
        RuleSetError: If priorities are not strictly ascending, the last rule
            is not deny-all, or the admin allow is not evaluated before the
            temporary allow-all
    """
    if not rules:
        raise RuleSetError("Rule set is empty")

    priorities = [rule.priority for rule in rules]
    if priorities != sorted(set(priorities)):
        raise RuleSetError(f"Rule priorities must be unique and ascending: {priorities}")

    if not rules[-1].is_deny_all:
        raise RuleSetError(f"Last rule must deny all inbound traffic, got {rules[-1].name}")

    admin = [r for r in rules if r.access == "Allow" and r.destination_ports == (ADMIN_PORT,)]
    if len(admin) != 1:
        raise RuleSetError("Exactly one rule must allow the administrative port")

    broad = [r for r in rules if r.is_allow_all]
    for rule in broad:
        if not admin[0].priority < rule.priority < rules[-1].priority:
            raise RuleSetError(
                f"{rule.name} must be evaluated after {admin[0].name} and before {rules[-1].name}"
            )


def _validate_networks(values: Any, version: int, label: str) -> tuple[str, ...]:
    if not isinstance(values, list) or not values:
        raise RuleSetError(f"'{label}' must be a non-empty list of CIDR ranges")

    ranges = []
    for value in values:
        try:
            network = ipaddress.ip_network(str(value), strict=False)
        except ValueError as e:
            raise RuleSetError(f"Invalid {label} range {value!r}: {e}") from e
        if network.version != version:
            raise RuleSetError(f"{value!r} is not an IPv{version} range")
        ranges.append(str(value))
    return tuple(ranges)


def load_trusted_ranges(path: str | Path | None) -> TrustedRanges:
    """Load trusted ranges from a YAML file.

    File format::

        ipv4:
          - 103.21.244.0/22
        ipv6:
          - 2400:cb00::/32

    A key that is missing keeps the built-in Cloudflare list.

    Args:
        path: YAML file, or None for the built-in lists

    Raises:
        RuleSetError: If the file is unreadable or a range is malformed
    """
    if path is None:
        return TrustedRanges()

    path = Path(path).expanduser()
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise RuleSetError(f"Cannot read trusted ranges file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise RuleSetError(f"Invalid YAML in trusted ranges file {path}: {e}") from e

    if not isinstance(data, dict):
        raise RuleSetError(f"Trusted ranges file {path} must contain a mapping")

    ipv4 = _validate_networks(data["ipv4"], 4, "ipv4") if "ipv4" in data else CLOUDFLARE_IPV4_RANGES
    ipv6 = _validate_networks(data["ipv6"], 6, "ipv6") if "ipv6" in data else CLOUDFLARE_IPV6_RANGES
    logger.debug(f"Loaded {len(ipv4)} IPv4 and {len(ipv6)} IPv6 trusted ranges from {path}")
    return TrustedRanges(ipv4=ipv4, ipv6=ipv6)


__all__ = [
    "CLOUDFLARE_IPV4_RANGES",
    "CLOUDFLARE_IPV6_RANGES",
    "FirewallRule",
    "RuleSetError",
    "TrustedRanges",
    "build_rules",
    "load_trusted_ranges",
    "validate_rule_set",
]
