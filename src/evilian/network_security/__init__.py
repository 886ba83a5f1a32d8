"""Network security for evilian VMs.

Philosophy:
- Fail-secure defaults (deny-all evaluated last)
- Rule construction is pure; applying it is the NSG manager's job

Public API:
    FirewallRule: One inbound NSG rule
    build_rules: Build the ordered five-rule set
    load_trusted_ranges: Trusted ranges from YAML
    validate_rule_set: Check rule ordering invariants
    NSGManager: Apply a rule set (evilian.network_security.nsg_manager)
"""

from evilian.network_security.nsg_policy import (
    CLOUDFLARE_IPV4_RANGES,
    CLOUDFLARE_IPV6_RANGES,
    FirewallRule,
    RuleSetError,
    TrustedRanges,
    build_rules,
    load_trusted_ranges,
    validate_rule_set,
)

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
