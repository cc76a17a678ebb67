"""Custom exceptions for network management."""

from typing import Iterable, Optional


class NetSwitchError(Exception):
    """Base exception for netswitch errors."""
    pass


class ConfigurationError(NetSwitchError):
    """Raised when there's an issue with netswitch configuration"""
    pass


class PrivilegeError(NetSwitchError):
    """Raised when an operation needs more privilege than we have"""
    pass


class InsufficientPrivilege(PrivilegeError):
    """Raised when a state-changing command runs without root"""

    def __init__(self, message: str = "This command requires root privileges (run with sudo)"):
        super().__init__(message)


class DependencyMissing(NetSwitchError):
    """Raised when required external programs are not installed"""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required programs: {', '.join(self.missing)}")


class StorageError(NetSwitchError):
    """Raised when the profile directory cannot be used"""
    pass


class StorageUnavailable(StorageError):
    """Raised when the profile directory is missing or unreadable"""
    pass


class ProfileError(NetSwitchError):
    """Raised when there's an issue with a stored WiFi profile"""
    pass


class ProfileNotFound(ProfileError):
    pass


class ProfileAlreadyExists(ProfileError):
    pass


class InvalidProfileId(ProfileError):
    pass


class DerivationFailed(ProfileError):
    """Raised when wpa_passphrase could not derive a configuration"""
    pass


class WriteFailed(ProfileError):
    pass


class ReadFailed(ProfileError):
    pass


class NoDefaultProfile(ProfileError):
    """Raised when the default supplicant configuration is missing"""
    pass


class BackendError(NetSwitchError):
    """Raised when an external network backend misbehaves"""
    pass


class InterfaceUpFailed(BackendError):
    pass


class InterfaceDownFailed(BackendError):
    pass


class StaleSocketCleanupFailed(BackendError):
    pass


class ProcessStillRunning(BackendError):
    """Raised when a process that was killed is still alive"""
    pass


class SupplicantLaunchFailed(BackendError):
    pass


class DhcpFailed(BackendError):
    pass


class VpnLaunchFailed(BackendError):
    pass


class PartialFailure(BackendError):
    """Raised when some steps of a best-effort sequence failed"""

    def __init__(self, message: str, errors: Optional[list] = None):
        self.errors = list(errors or [])
        super().__init__(message)


class BackendTimeout(BackendError):
    """Raised when an external program did not finish in time"""
    pass


class ScanError(NetSwitchError):
    pass


class ScanFailed(ScanError):
    """Raised when the hotspot scan could not be completed"""
    pass


class ConnectionFailed(NetSwitchError):
    """Raised when bringing up a backend fails"""

    def __init__(self, backend, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Failed to connect {backend.value}: {reason}")


class CoordinatorBusy(NetSwitchError):
    """Raised when another invocation holds the coordinator lock"""
    pass


class InvalidInvocation(NetSwitchError):
    """Raised for unknown commands or subcommands"""
    pass


class CommandError(NetSwitchError):
    """Base exception for command-related errors."""
    pass


class ValidationError(CommandError):
    """Raised when command validation fails."""
    pass


class CommandFailed(CommandError):
    """Raised when an external command exits with a non-zero status"""

    def __init__(self, cmd: list[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        detail = self.stderr.strip() or self.stdout.strip()
        message = f"Command failed ({returncode}): {' '.join(self.cmd)}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class CommandTimeout(CommandError):
    """Raised when an external command exceeds its timeout"""

    def __init__(self, cmd: list[str], timeout: float):
        self.cmd = list(cmd)
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {' '.join(self.cmd)}")
