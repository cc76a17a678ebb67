"""Hotspot scanning."""

from typing import Callable

from .command_factory import NetCommandFactory
from .exceptions import CommandFailed, CommandTimeout, ScanFailed
from .utils import run_command
from ..logging_utility import logger
from ..settings import Settings


def parse_ssids(output: str) -> list[str]:
    """
    Extract network names from ``iw dev <if> scan`` output.

    Hidden networks (empty SSID) are skipped and repeated names, one per
    access point, collapse to their first occurrence.
    """
    ssids: list[str] = []
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped.startswith("SSID:"):
            continue
        ssid = stripped[len("SSID:"):].strip()
        if ssid and ssid not in ssids:
            ssids.append(ssid)
    return ssids


class ScanQuery:
    def __init__(self, settings: Settings, runner: Callable = run_command):
        self.timeout = settings.command_timeout
        self._run = runner

    def scan(self, interface: str) -> list[str]:
        logger.info(f"Scanning for networks on {interface}")
        try:
            self._run(NetCommandFactory.interface_up(interface), timeout=self.timeout)
            stdout, _ = self._run(NetCommandFactory.scan(interface), timeout=self.timeout)
        except (CommandFailed, CommandTimeout) as e:
            logger.error(f"Scan on {interface} failed: {e}")
            raise ScanFailed(f"Scan on {interface} failed: {e}") from e
        ssids = parse_ssids(stdout)
        logger.info(f"Found {len(ssids)} networks")
        return ssids
