"""NSG Manager for applying the inbound rule set to Azure.

Creates the network security group and then each rule in ascending
priority order through the control-plane client.
"""

import logging

from evilian.control_plane import AzureControlPlane
from evilian.network_security.nsg_policy import FirewallRule, validate_rule_set

logger = logging.getLogger(__name__)


class NSGManager:
    """Applies a validated rule set to a network security group."""

    def __init__(self, control_plane: AzureControlPlane):
        self.control_plane = control_plane

    def apply(
        self,
        nsg_name: str,
        resource_group: str,
        region: str,
        rules: list[FirewallRule],
    ) -> None:
        """Create the NSG and its rules.

        Args:
            nsg_name: NSG name
            resource_group: Resource group
            region: Azure region
            rules: Rule set from build_rules

        Raises:
            RuleSetError: If the rule set breaks the ordering invariants
            ControlPlaneError: If any Azure call fails
        """
        validate_rule_set(rules)

        logger.info(f"Creating network security group {nsg_name}...")
        self.control_plane.create_nsg(nsg_name, resource_group, region)

        for rule in sorted(rules, key=lambda r: r.priority):
            logger.debug(f"Creating rule {rule.name} (priority {rule.priority})")
            self.control_plane.create_rule(resource_group, nsg_name, rule)

        logger.info(f"Applied {len(rules)} inbound rules to {nsg_name}")


__all__ = ["NSGManager"]
