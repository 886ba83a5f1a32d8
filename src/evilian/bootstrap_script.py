"""Bootstrap script artifact for converting the VM to Kali rolling.

The script is built as data: an ordered tuple of named, idempotent steps
plus a common preamble, rendered to bash only when it is handed to the
run-command channel. The same artifact runs before and after the reboot,
so every step must be safe to run on an already converged VM.

Step order:
    1. reset an interrupted dpkg transaction
    2. wait for apt/dpkg locks (in-script, 30 x 10s)
    3. install curl and gnupg if missing
    4. fetch and dearmor the Kali archive key
    5. back up and atomically replace /etc/apt/sources.list
    6. refresh the package index
    7. install the toolset
    8. wait for apt/dpkg locks again
    9. verify a tool binary resolves on PATH (exit 1 otherwise)

Public API:
    BootstrapStep: One named shell fragment
    BootstrapScript: Versioned, ordered steps with render()
    BootstrapScriptBuilder: Builds the default script
"""

import posixpath
import shlex
from dataclasses import dataclass

SCRIPT_VERSION = "1"

KALI_KEY_URL = "https://archive.kali.org/archive-key.asc"
KALI_KEYRING = "/usr/share/keyrings/kali-archive-keyring.gpg"
KALI_REPOSITORY = "http://http.kali.org/kali kali-rolling main contrib non-free non-free-firmware"
SOURCES_LIST = "/etc/apt/sources.list"

DEFAULT_TOOL_PACKAGES: tuple[str, ...] = ("curl", "git", "evilginx2", "screen", "jq", "htop")
DEFAULT_TOOL_BINARIES: tuple[str, ...] = ("evilginx2", "evilginx")

PACKAGE_MANAGER_PROCESSES: tuple[str, ...] = ("apt", "apt-get", "aptitude", "dpkg")


def package_manager_busy_test(processes: tuple[str, ...] = PACKAGE_MANAGER_PROCESSES) -> str:
    """Shell condition that is true while any package manager process runs."""
    return " || ".join(f"pgrep -x {name} >/dev/null" for name in processes)


@dataclass(frozen=True)
class BootstrapStep:
    """A named, idempotent shell fragment."""

    name: str
    description: str
    body: str

    def render(self) -> str:
        return f"# step: {self.name}\nlog {_quote(self.description)}\n{self.body.strip()}\n"


@dataclass(frozen=True)
class BootstrapScript:
    """A versioned bootstrap script.

    ``render()`` output is deterministic for a given version and step list,
    so two runs hand byte-identical scripts to the VM.
    """

    version: str
    steps: tuple[BootstrapStep, ...]
    preamble: str = ""

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def render(self) -> str:
        parts = [
            "#!/usr/bin/env bash",
            f"# evilian bootstrap script v{self.version}",
            "set -euo pipefail",
            "",
            self.preamble.strip(),
            "",
        ]
        parts.extend(step.render() for step in self.steps)
        return "\n".join(parts)


def _quote(value: str) -> str:
    return "'" + value.replace("'", "'\"'\"'") + "'"


class BootstrapScriptBuilder:
    """Build the bootstrap script for a toolset.

    Example:
        >>> script = BootstrapScriptBuilder().build()
        >>> script.step_names[0]
        'reset-dpkg'
    """

    def __init__(
        self,
        tool_packages: tuple[str, ...] = DEFAULT_TOOL_PACKAGES,
        tool_binaries: tuple[str, ...] = DEFAULT_TOOL_BINARIES,
        lock_wait_attempts: int = 30,
        lock_wait_interval: int = 10,
        version: str = SCRIPT_VERSION,
        sources_list: str = SOURCES_LIST,
        keyring: str = KALI_KEYRING,
    ):
        if not tool_packages:
            raise ValueError("At least one tool package is required")
        if not tool_binaries:
            raise ValueError("At least one tool binary is required")

        self.tool_packages = tuple(tool_packages)
        self.tool_binaries = tuple(tool_binaries)
        self.lock_wait_attempts = lock_wait_attempts
        self.lock_wait_interval = lock_wait_interval
        self.version = version
        self.sources_list = sources_list
        self.keyring = keyring

    def preamble(self) -> str:
        return f"""\
export DEBIAN_FRONTEND=noninteractive

log() {{
    printf '[evilian-bootstrap] %s\\n' "$*"
}}

ensure_sudo() {{
    if command -v sudo >/dev/null 2>&1; then
        sudo "$@"
    else
        "$@"
    fi
}}

wait_for_pkg_managers() {{
    local attempts={self.lock_wait_attempts}
    for ((i=1; i<=attempts; i++)); do
        if {package_manager_busy_test()}; then
            log "Package manager busy (attempt ${{i}}/${{attempts}}); sleeping {self.lock_wait_interval}s..."
            sleep {self.lock_wait_interval}
        else
            log "Package manager is idle."
            return 0
        fi
    done
    log "Proceeding even though package manager still appears busy."
}}
"""

    def _verify_body(self) -> str:
        lines = []
        for index, binary in enumerate(self.tool_binaries):
            keyword = "if" if index == 0 else "elif"
            lines.append(f"{keyword} command -v {binary} >/dev/null 2>&1; then")
            lines.append(f'    log "{binary} found on PATH."')
        lines.append("else")
        lines.append(f'    log "ERROR: none of {", ".join(self.tool_binaries)} found after installation."')
        lines.append("    exit 1")
        lines.append("fi")
        return "\n".join(lines)

    @property
    def source_line(self) -> str:
        return f"deb [signed-by={self.keyring}] {KALI_REPOSITORY}"

    def steps(self) -> tuple[BootstrapStep, ...]:
        packages = " ".join(self.tool_packages)
        sources = shlex.quote(self.sources_list)
        keyring = shlex.quote(self.keyring)
        keyring_dir = shlex.quote(posixpath.dirname(self.keyring))
        return (
            BootstrapStep(
                name="reset-dpkg",
                description="Checking for interrupted dpkg state...",
                body="ensure_sudo dpkg --configure -a || true",
            ),
            BootstrapStep(
                name="wait-locks",
                description="Waiting for apt/dpkg locks...",
                body="wait_for_pkg_managers",
            ),
            BootstrapStep(
                name="key-prerequisites",
                description="Ensuring curl and gpg are available...",
                body=f"""\
ensure_sudo install -d -m 0755 {keyring_dir}
if ! command -v curl >/dev/null 2>&1 || ! command -v gpg >/dev/null 2>&1; then
    ensure_sudo apt update -y
fi
if ! command -v curl >/dev/null 2>&1; then
    ensure_sudo apt install -y curl
fi
if ! command -v gpg >/dev/null 2>&1; then
    ensure_sudo apt install -y gnupg
fi""",
            ),
            BootstrapStep(
                name="archive-key",
                description="Adding Kali archive key...",
                body=f"""\
key_tmp=$(mktemp)
curl -fsSL {KALI_KEY_URL} -o "$key_tmp"
ensure_sudo gpg --batch --yes --dearmor -o {keyring} "$key_tmp"
rm -f "$key_tmp\"""",
            ),
            BootstrapStep(
                name="switch-sources",
                description=f"Switching {self.sources_list} to Kali rolling...",
                body=f"""\
sources_tmp=$(mktemp)
printf '%s\\n' {_quote(self.source_line)} > "$sources_tmp"
if ! cmp -s "$sources_tmp" {sources}; then
    if [ -f {sources} ]; then
        ensure_sudo cp {sources} {sources}.bak-$(date +%s)
    fi
    ensure_sudo install -m 0644 "$sources_tmp" {sources}.evilian-new
    ensure_sudo mv -f {sources}.evilian-new {sources}
fi
rm -f "$sources_tmp\"""",
            ),
            BootstrapStep(
                name="refresh-index",
                description="Updating package lists (apt update)...",
                body="ensure_sudo apt update -y",
            ),
            BootstrapStep(
                name="install-tools",
                description=f"Installing {packages}...",
                body=f"ensure_sudo apt install -y {packages}",
            ),
            BootstrapStep(
                name="wait-settle",
                description="Waiting for apt/dpkg to settle after installations...",
                body="wait_for_pkg_managers",
            ),
            BootstrapStep(
                name="verify-tool",
                description="Verifying the tool binary...",
                body=self._verify_body(),
            ),
        )

    def build(self) -> BootstrapScript:
        return BootstrapScript(version=self.version, steps=self.steps(), preamble=self.preamble())


def package_manager_probe_script() -> str:
    """One-line script that prints ``true`` while apt/dpkg is running, else ``false``."""
    return f"if {package_manager_busy_test()}; then echo true; else echo false; fi"


__all__ = [
    "BootstrapScript",
    "BootstrapScriptBuilder",
    "BootstrapStep",
    "DEFAULT_TOOL_BINARIES",
    "DEFAULT_TOOL_PACKAGES",
    "SCRIPT_VERSION",
    "package_manager_busy_test",
    "package_manager_probe_script",
]
