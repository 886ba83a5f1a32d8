"""Azure authentication check.

Login is delegated entirely to the Azure CLI, which keeps its tokens in the
configured AZURE_CONFIG_DIR. This module only confirms that a session exists
before any resource is touched.

Security:
- No credential storage
- Delegates to az CLI
- Account details are read for display only
"""

import json
import logging
from dataclasses import dataclass

from evilian.azure_cli_visibility import AzureCLIExecutor
from evilian.exceptions import PreconditionError

logger = logging.getLogger(__name__)

LOGIN_HINT = "Authenticate to Azure first: az login --use-device-code"


@dataclass
class AzureAccount:
    """The subscription the Azure CLI is logged in to."""

    subscription_id: str | None = None
    subscription_name: str | None = None
    user: str | None = None


class AzureAuthenticator:
    """Confirm an Azure CLI session before provisioning."""

    def __init__(self, executor: AzureCLIExecutor):
        self.executor = executor

    def ensure_logged_in(self) -> AzureAccount:
        """Run ``az account show`` and return the active account.

        Raises:
            PreconditionError: If the CLI has no active session
        """
        result = self.executor.execute(
            ["az", "account", "show", "--only-show-errors", "-o", "json"]
        )
        if not result["success"]:
            logger.debug(f"az account show failed: {result.get('stderr', '').strip()}")
            raise PreconditionError(LOGIN_HINT)

        try:
            data = json.loads(result["stdout"] or "{}")
        except json.JSONDecodeError:
            data = {}

        account = AzureAccount(
            subscription_id=data.get("id"),
            subscription_name=data.get("name"),
            user=(data.get("user") or {}).get("name"),
        )
        if account.subscription_name:
            logger.info(f"Using Azure subscription: {account.subscription_name}")
        return account


__all__ = ["AzureAccount", "AzureAuthenticator", "LOGIN_HINT"]
