"""evilian - disposable Azure VM provisioning CLI

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Create-only: resources are never deleted automatically
- Fail fast with helpful guidance

The evilian CLI creates a locked-down Debian VM in its own resource group,
converts it to the Kali rolling repository, installs the toolset and hands
the operator an interactive SSH session.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
