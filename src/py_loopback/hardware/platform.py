"""
Host platform detection for the playback/capture program.

Maps the running system onto the platform labels for which a TestTone build
exists, and onto the sound API recommended for each of them.
"""

import platform as _platform
import sys

from ..core.errors import UnsupportedPlatform

MAC = "MAC"
PCWIN = "PCWIN"
LINUX_X86_32 = "LINUX_X86-32"
LINUX_X86_64 = "LINUX_X86-64"
LINUX_PPC = "LINUX_PPC"
LINUX_ARM = "LINUX_ARM_GNUEABIHF"

RECOMMENDED_API = {
    MAC: "Core Audio",
    PCWIN: "ASIO",
    LINUX_X86_32: "ALSA",
    LINUX_X86_64: "ALSA",
    LINUX_PPC: "ALSA",
    LINUX_ARM: "ALSA",
}

_LINUX_MACHINES = {
    "i386": LINUX_X86_32,
    "i486": LINUX_X86_32,
    "i586": LINUX_X86_32,
    "i686": LINUX_X86_32,
    "x86_64": LINUX_X86_64,
    "amd64": LINUX_X86_64,
    "ppc": LINUX_PPC,
    "ppc64": LINUX_PPC,
    "ppc64le": LINUX_PPC,
    "armv6l": LINUX_ARM,
    "armv7l": LINUX_ARM,
}


def detect_platform(system: str | None = None, machine: str | None = None) -> str | None:
    """
    Returns the platform label of the host, or None if no label applies.

    :param system: Override for sys.platform (used by tests).
    :param machine: Override for platform.machine() (used by tests).
    """
    system = system if system is not None else sys.platform
    machine = (machine if machine is not None else _platform.machine()).lower()

    if system == "darwin":
        return MAC
    if system in ("win32", "cygwin"):
        return PCWIN
    if system.startswith("linux"):
        return _LINUX_MACHINES.get(machine)
    return None


def require_supported_platform(label: str | None) -> str:
    """
    Validates a platform label.

    :raises UnsupportedPlatform: If the label has no TestTone build.
    """
    if label not in RECOMMENDED_API:
        raise UnsupportedPlatform(
            f"Sorry, this computer platform ({label or 'unknown'}) is not (yet) supported by the TestTone program."
        )
    return label


def executable_name(base: str, label: str) -> str:
    """Appends the platform's executable suffix to a program path."""
    if label == PCWIN and not base.lower().endswith(".exe"):
        return f"{base}.exe"
    return base
