"""Resource naming.

All Azure resource names are derived from the project name with fixed
templates, so two runs with different project names never touch the same
resources.
"""

from dataclasses import dataclass

RESOURCE_PREFIX = "evilian-"
CREATOR_TAG_KEY = "createdBy"
CREATOR_TAG_VALUE = "evilian"
PROJECT_TAG_KEY = "project"


@dataclass(frozen=True)
class ResourceNameSet:
    """Names of the resources a run creates."""

    resource_group: str
    vm_name: str
    nsg_name: str


def derive(project_name: str) -> ResourceNameSet:
    """Derive resource names from a validated project name.

    Example:
        >>> derive("evil123").resource_group
        'evilian-evil123-rg'
    """
    base = f"{RESOURCE_PREFIX}{project_name}"
    return ResourceNameSet(
        resource_group=f"{base}-rg",
        vm_name=f"{base}-vm",
        nsg_name=f"{base}-nsg",
    )


def resource_tags(project_name: str) -> dict[str, str]:
    """Tags placed on the resource group and the VM.

    The createdBy tag is how later runs discover groups to offer for deletion.
    """
    return {CREATOR_TAG_KEY: CREATOR_TAG_VALUE, PROJECT_TAG_KEY: project_name}


__all__ = [
    "CREATOR_TAG_KEY",
    "CREATOR_TAG_VALUE",
    "PROJECT_TAG_KEY",
    "RESOURCE_PREFIX",
    "ResourceNameSet",
    "derive",
    "resource_tags",
]
