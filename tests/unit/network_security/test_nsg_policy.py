"""Unit tests for the inbound firewall policy."""

from dataclasses import replace

import pytest

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


class TestBuildRules:
    """Tests for build_rules."""

    def test_exactly_five_rules(self):
        assert len(build_rules("203.0.113.5/32")) == 5

    def test_priorities_strictly_ascending(self):
        priorities = [rule.priority for rule in build_rules("203.0.113.5/32")]
        assert priorities == [200, 300, 310, 900, 1000]

    def test_admin_rule_uses_allowed_range(self):
        admin = build_rules("203.0.113.5/32")[0]
        assert admin.name == "AllowEvilianSSH"
        assert admin.access == "Allow"
        assert admin.protocol == "Tcp"
        assert admin.source_ranges == ("203.0.113.5/32",)
        assert admin.destination_ports == ("22",)

    def test_trusted_web_rules(self):
        rules = {rule.name: rule for rule in build_rules("203.0.113.5")}
        v4 = rules["AllowCloudflareWebIPv4"]
        v6 = rules["AllowCloudflareWebIPv6"]
        assert v4.source_ranges == CLOUDFLARE_IPV4_RANGES
        assert v6.source_ranges == CLOUDFLARE_IPV6_RANGES
        assert v4.destination_ports == ("80", "443")
        assert v6.destination_ports == ("80", "443")
        assert len(v4.source_ranges) == 15
        assert len(v6.source_ranges) == 7

    def test_deny_all_is_last(self):
        rules = build_rules("203.0.113.5/32")
        assert rules[-1].is_deny_all
        assert rules[-1].name == "DenyAllInbound"

    def test_temporary_allow_between_admin_and_deny(self):
        rules = build_rules("203.0.113.5/32")
        by_name = {rule.name: rule for rule in rules}
        temporary = by_name["AllowTemporaryAll"]
        assert temporary.is_allow_all
        assert by_name["AllowEvilianSSH"].priority < temporary.priority < by_name["DenyAllInbound"].priority

    def test_overlapping_range_still_gets_own_rule(self):
        rules = build_rules("104.16.0.1/32")
        assert len(rules) == 5
        assert rules[0].source_ranges == ("104.16.0.1/32",)

    def test_custom_trusted_ranges(self):
        rules = build_rules("203.0.113.5", ["198.51.100.0/24"], ["2001:db8::/32"])
        assert rules[1].source_ranges == ("198.51.100.0/24",)
        assert rules[2].source_ranges == ("2001:db8::/32",)

    def test_built_rules_validate(self):
        validate_rule_set(build_rules("0.0.0.0/0"))


class TestValidateRuleSet:
    """Tests for validate_rule_set."""

    def test_empty(self):
        with pytest.raises(RuleSetError, match="empty"):
            validate_rule_set([])

    def test_unordered_priorities(self):
        rules = build_rules("203.0.113.5/32")
        rules[0], rules[1] = rules[1], rules[0]
        with pytest.raises(RuleSetError, match="ascending"):
            validate_rule_set(rules)

    def test_duplicate_priorities(self):
        rules = build_rules("203.0.113.5/32")
        rules[2] = replace(rules[2], priority=300)
        with pytest.raises(RuleSetError, match="unique"):
            validate_rule_set(rules)

    def test_missing_deny(self):
        rules = build_rules("203.0.113.5/32")[:-1]
        with pytest.raises(RuleSetError, match="deny all"):
            validate_rule_set(rules)

    def test_missing_admin_rule(self):
        rules = build_rules("203.0.113.5/32")[1:]
        with pytest.raises(RuleSetError, match="administrative port"):
            validate_rule_set(rules)

    def test_allow_all_before_admin(self):
        rules = build_rules("203.0.113.5/32")
        rules[3] = replace(rules[3], priority=100)
        rules.sort(key=lambda r: r.priority)
        with pytest.raises(RuleSetError, match="AllowTemporaryAll"):
            validate_rule_set(rules)

    def test_single_deny_rule_without_admin(self):
        deny = FirewallRule("DenyAllInbound", 1000, "Deny", "*", ("*",), ("*",))
        with pytest.raises(RuleSetError):
            validate_rule_set([deny])


class TestLoadTrustedRanges:
    """Tests for load_trusted_ranges."""

    def test_none_returns_builtin(self):
        assert load_trusted_ranges(None) == TrustedRanges()

    def test_valid_file(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv4:\n  - 198.51.100.0/24\nipv6:\n  - 2001:db8::/32\n")

        ranges = load_trusted_ranges(path)

        assert ranges.ipv4 == ("198.51.100.0/24",)
        assert ranges.ipv6 == ("2001:db8::/32",)

    def test_missing_key_keeps_builtin(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv4:\n  - 198.51.100.0/24\n")

        ranges = load_trusted_ranges(str(path))

        assert ranges.ipv4 == ("198.51.100.0/24",)
        assert ranges.ipv6 == CLOUDFLARE_IPV6_RANGES

    def test_empty_file_keeps_builtin(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("")
        assert load_trusted_ranges(path) == TrustedRanges()

    def test_bad_cidr(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv4:\n  - 300.1.1.0/24\n")
        with pytest.raises(RuleSetError, match="Invalid ipv4 range"):
            load_trusted_ranges(path)

    def test_wrong_ip_version(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv6:\n  - 198.51.100.0/24\n")
        with pytest.raises(RuleSetError, match="not an IPv6 range"):
            load_trusted_ranges(path)

    def test_empty_list(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv4: []\n")
        with pytest.raises(RuleSetError, match="non-empty list"):
            load_trusted_ranges(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("- 198.51.100.0/24\n")
        with pytest.raises(RuleSetError, match="mapping"):
            load_trusted_ranges(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "ranges.yaml"
        path.write_text("ipv4: [unclosed\n")
        with pytest.raises(RuleSetError, match="Invalid YAML"):
            load_trusted_ranges(path)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(RuleSetError, match="Cannot read"):
            load_trusted_ranges(tmp_path / "missing.yaml")

    def test_rule_set_error_is_validation_error(self):
        assert RuleSetError("x").exit_code == 2
