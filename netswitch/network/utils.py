"""Utility functions for network management."""

import fcntl
import os
import shutil
import subprocess
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple

from .commands import DHCP_CLIENTS, IP, IW, OPENVPN, SCREEN, WPA_PASSPHRASE, WPA_SUPPLICANT
from .exceptions import (
    CommandFailed,
    CommandTimeout,
    CoordinatorBusy,
    DependencyMissing,
    InsufficientPrivilege,
)
from ..logging_utility import logger

# Directives whose argument is a file OpenVPN must be able to read
VPN_FILE_DIRECTIVES = ("ca", "cert", "key", "tls-auth", "tls-crypt", "pkcs12", "auth-user-pass")


def run_command(
        cmd: list[str],
        check: bool = True,
        timeout: Optional[float] = None,
        input: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Run external command and return output.

    Args:
        cmd: Command as list of strings
        check: Whether to raise exception on error
        timeout: Seconds before the command is killed
        input: Text passed on stdin

    Returns:
        Tuple of (stdout, stderr)
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=check,
            timeout=timeout,
            input=input,
        )
        return result.stdout, result.stderr
    except subprocess.CalledProcessError as e:
        raise CommandFailed(cmd, e.returncode, e.stdout, e.stderr)
    except subprocess.TimeoutExpired:
        raise CommandTimeout(cmd, timeout)
    except FileNotFoundError:
        raise DependencyMissing([cmd[0]])


def ensure_privileged(geteuid: Callable[[], int] = os.geteuid) -> None:
    """Fail fast unless running as root."""
    if geteuid() != 0:
        raise InsufficientPrivilege()


def required_programs(dhcp_client: str) -> list[str]:
    """Programs the backends shell out to."""
    commands = (IP, IW, WPA_SUPPLICANT, WPA_PASSPHRASE, DHCP_CLIENTS[dhcp_client], SCREEN, OPENVPN)
    return [command.program for command in commands]


def check_dependencies(programs: list[str], which: Callable[[str], Optional[str]] = shutil.which) -> None:
    """
    Verify every program is installed.

    All missing programs are reported together.

    Raises:
        DependencyMissing: if any program cannot be found on PATH
    """
    missing = [program for program in programs if not which(program)]
    if missing:
        raise DependencyMissing(missing)


def wait_for_process(
        probe: Callable[[], bool],
        description: str,
        timeout: float,
        poll_interval: float = 0.5,
) -> bool:
    """
    Wait until ``probe`` reports the process is up.

    Args:
        probe: Returns True once the process is visible
        description: Name used in log messages
        timeout: Maximum seconds to wait
        poll_interval: Seconds between probes

    Returns:
        bool: True if the process appeared in time
    """
    logger.info(f"Waiting for {description} to start...")
    deadline = time.monotonic() + timeout
    attempt = 0
    while True:
        attempt += 1
        if probe():
            logger.info(f"{description} is running")
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(poll_interval)
        logger.debug(f"Waiting for {description}... (attempt {attempt})")


def inspect_vpn_config(config_file: Path) -> list[str]:
    """
    Check an OpenVPN configuration for files it references.

    Args:
        config_file: Path to the OpenVPN configuration

    Returns:
        list of referenced files that do not exist
    """
    config_dir = config_file.parent
    missing = []
    with open(config_file, 'r') as f:
        for line in f:
            parts = line.strip().split()
            if len(parts) < 2 or parts[0] not in VPN_FILE_DIRECTIVES:
                continue
            file_path = Path(parts[1])
            if not file_path.is_absolute():
                file_path = config_dir / file_path
            if not file_path.exists():
                missing.append(parts[1])
    return missing


@contextmanager
def coordinator_lock(lock_file: Path) -> Iterator[None]:
    """Hold an exclusive lock for the duration of a state-changing command."""
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_file, "a") as handle:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise CoordinatorBusy(f"Another netswitch command holds {lock_file}")
        try:
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
