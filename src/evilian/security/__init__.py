"""Security module for evilian.

- AzureCommandSanitizer: Sanitize Azure CLI commands before display/logging

Example:
    >>> from evilian.security import AzureCommandSanitizer
    >>> print(AzureCommandSanitizer.sanitize("az vm create --admin-password Secret"))
    az vm create --admin-password [REDACTED]
"""

from evilian.security.azure_command_sanitizer import AzureCommandSanitizer

__all__ = ["AzureCommandSanitizer"]
