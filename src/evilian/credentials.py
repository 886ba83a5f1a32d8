"""One-time VM admin credential generation.

The credential is created right before the VM, shown once, optionally used
for one interactive session and never written to disk.
"""

import secrets
import string
from dataclasses import dataclass, field

USERNAME_PREFIX = "evil"
USERNAME_SUFFIX_LENGTH = 6
USERNAME_ALPHABET = string.ascii_lowercase + string.digits
PASSWORD_LENGTH = 24
PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#%^&*"


@dataclass(frozen=True)
class VmCredential:
    """Admin username and password for the VM."""

    username: str
    password: str = field(repr=False)


def generate_username() -> str:
    """Return ``evil`` followed by six random lowercase alphanumerics."""
    suffix = "".join(secrets.choice(USERNAME_ALPHABET) for _ in range(USERNAME_SUFFIX_LENGTH))
    return f"{USERNAME_PREFIX}{suffix}"


def _character_classes(value: str) -> int:
    classes = [
        any(c in string.ascii_lowercase for c in value),
        any(c in string.ascii_uppercase for c in value),
        any(c in string.digits for c in value),
        any(c not in string.ascii_letters + string.digits for c in value),
    ]
    return sum(classes)


def generate_password() -> str:
    """Return 24 random characters from letters, digits and ``!@#%^&*``.

    Azure rejects admin passwords with fewer than three character classes,
    so the rare draw that misses two classes is discarded.
    """
    while True:
        password = "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(PASSWORD_LENGTH))
        if _character_classes(password) >= 3:
            return password


def generate_credential() -> VmCredential:
    """Generate a fresh credential for one run."""
    return VmCredential(username=generate_username(), password=generate_password())


__all__ = ["VmCredential", "generate_credential", "generate_password", "generate_username"]
