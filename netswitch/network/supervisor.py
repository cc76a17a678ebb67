"""Supervision of the external network backend processes."""

import os
import socket
from pathlib import Path
from typing import Callable, Dict, List, Optional

import psutil

from .command_factory import NetCommandFactory
from .exceptions import (
    BackendError,
    BackendTimeout,
    CommandFailed,
    CommandTimeout,
    DhcpFailed,
    InterfaceDownFailed,
    InterfaceUpFailed,
    PartialFailure,
    ProcessStillRunning,
    StaleSocketCleanupFailed,
    SupplicantLaunchFailed,
    VpnLaunchFailed,
)
from .models import ManagedProcess, ProcessInfo, ProcessKind, ProcessStatus, VpnMode
from .steps import FailurePolicy, Step, run_steps
from .utils import run_command, wait_for_process
from ..logging_utility import logger
from ..settings import Settings


def default_identities(settings: Settings) -> Dict[ProcessKind, str]:
    """Program names used to find each kind of process."""
    return {
        ProcessKind.SUPPLICANT: "wpa_supplicant",
        ProcessKind.DHCP: settings.dhcp_client,
        ProcessKind.VPN: "openvpn",
    }


def name_matches(info: dict, identity: str) -> bool:
    """Match on the process name or the basename of argv[0]."""
    if info.get("name") == identity:
        return True
    cmdline = info.get("cmdline") or []
    return bool(cmdline) and os.path.basename(cmdline[0]) == identity


class ProcessRegistry:
    """Finds and kills processes by identity."""

    def find(self, identity: str) -> List[ProcessInfo]:
        raise NotImplementedError

    def kill(self, pid: int) -> None:
        raise NotImplementedError


class PsutilRegistry(ProcessRegistry):
    def __init__(self, matcher: Callable[[dict, str], bool] = name_matches):
        self._matches = matcher

    def find(self, identity: str) -> List[ProcessInfo]:
        found = []
        for proc in psutil.process_iter(["pid", "name", "cmdline"]):
            info = proc.info
            if self._matches(info, identity):
                found.append(ProcessInfo(pid=info["pid"], cmdline=list(info.get("cmdline") or [])))
        return found

    def kill(self, pid: int) -> None:
        """Send SIGKILL; a process that is already gone counts as killed."""
        try:
            psutil.Process(pid).kill()
        except psutil.NoSuchProcess:
            logger.debug(f"Process {pid} already exited")
        except psutil.AccessDenied as e:
            raise BackendError(f"Not permitted to kill process {pid}") from e


class ProcessSupervisor:
    def __init__(
            self,
            settings: Settings,
            runner: Callable = run_command,
            registry: Optional[ProcessRegistry] = None,
            identities: Optional[Dict[ProcessKind, str]] = None,
            net_if_addrs: Callable[[], dict] = psutil.net_if_addrs,
    ):
        self.settings = settings
        self._run = runner
        self.registry = registry or PsutilRegistry()
        self.identities = identities or default_identities(settings)
        self._net_if_addrs = net_if_addrs
        self.managed: List[ManagedProcess] = []

    def _call(self, cmd: list[str], error_cls: type, timeout: Optional[float] = None) -> str:
        """Run a backend command, translating failures to ``error_cls``."""
        timeout = timeout or self.settings.command_timeout
        try:
            stdout, _ = self._run(cmd, timeout=timeout)
        except CommandTimeout as e:
            raise BackendTimeout(str(e)) from e
        except CommandFailed as e:
            raise error_cls(str(e)) from e
        return stdout

    def _track(self, process: ManagedProcess) -> ManagedProcess:
        self.managed.append(process)
        return process

    def _forget(self, kind: ProcessKind) -> None:
        for process in self.managed:
            if process.kind is kind:
                process.status = ProcessStatus.STOPPED
        self.managed = [p for p in self.managed if p.kind is not kind]

    def _find(self, kind: ProcessKind) -> List[ProcessInfo]:
        return self.registry.find(self.identities[kind])

    # Interfaces

    def interface_up(self, interface: str) -> None:
        self._call(NetCommandFactory.interface_up(interface), InterfaceUpFailed)

    def interface_down(self, interface: str) -> None:
        self._call(NetCommandFactory.interface_down(interface), InterfaceDownFailed)

    def interface_has_address(self, interface: str) -> bool:
        addresses = self._net_if_addrs().get(interface, [])
        return any(address.family == socket.AF_INET for address in addresses)

    def clear_stale_socket(self, interface: str) -> None:
        """Remove a control socket left behind by a killed supplicant."""
        socket_path = Path(self.settings.control_socket_dir) / interface
        try:
            socket_path.unlink(missing_ok=True)
        except OSError as e:
            raise StaleSocketCleanupFailed(f"Could not remove {socket_path}: {e}") from e

    # Backends

    def start_wifi(self, interface: str, config_source: Path) -> ManagedProcess:
        """
        Start wpa_supplicant in the background.

        Args:
            interface: WiFi interface name
            config_source: Supplicant configuration file

        Returns:
            ManagedProcess for the supplicant
        """
        run_steps([
            Step(f"Bringing {interface} up", lambda: self.interface_up(interface)),
            Step(
                f"Clearing stale control socket for {interface}",
                lambda: self.clear_stale_socket(interface),
                FailurePolicy.CONTINUE,
            ),
            Step(
                f"Starting wpa_supplicant on {interface} with {config_source}",
                lambda: self._call(
                    NetCommandFactory.start_supplicant(interface, config_source, self.settings.supplicant_driver),
                    SupplicantLaunchFailed,
                    self.settings.supplicant_timeout,
                ),
            ),
        ])
        pid = next(
            (p.pid for p in self._find(ProcessKind.SUPPLICANT) if p.option("-c") == str(config_source)),
            None,
        )
        return self._track(ManagedProcess(
            kind=ProcessKind.SUPPLICANT,
            interface=interface,
            config_path=str(config_source),
            pid=pid,
        ))

    def lease_held(self, interface: str) -> bool:
        """True when a DHCP client already serves ``interface`` and it has an address."""
        serving = any(interface in p.cmdline[1:] for p in self._find(ProcessKind.DHCP))
        return serving and self.interface_has_address(interface)

    def acquire_lease(self, interface: str, keep_existing: bool = False) -> None:
        """Run the DHCP client; with ``keep_existing`` a lease already held is reused."""
        if keep_existing and self.lease_held(interface):
            logger.info(f"{interface} already holds a DHCP lease")
            return
        self._call(
            NetCommandFactory.acquire_lease(self.settings.dhcp_client, interface),
            DhcpFailed,
            self.settings.dhcp_timeout,
        )

    def start_wired(self, interface: str) -> None:
        run_steps([
            Step(f"Bringing {interface} up", lambda: self.interface_up(interface)),
            Step(
                f"Requesting DHCP lease on {interface} with {self.settings.dhcp_client}",
                lambda: self.acquire_lease(interface, keep_existing=True),
            ),
        ])

    def start_vpn(self, mode: VpnMode, config_path: Path, session_name: str) -> ManagedProcess:
        """
        Start OpenVPN inside a detached screen session.

        Args:
            mode: Direct or shared routing
            config_path: OpenVPN configuration file
            session_name: Name of the screen session

        Returns:
            ManagedProcess for the VPN client
        """
        already_running = {p.pid for p in self._find(ProcessKind.VPN)}
        self._call(NetCommandFactory.start_vpn(mode, config_path, session_name), VpnLaunchFailed)

        started: List[ProcessInfo] = []

        def probe() -> bool:
            started[:] = [
                p for p in self._find(ProcessKind.VPN)
                if p.pid not in already_running and p.option("--config") == str(config_path)
            ]
            return bool(started)

        if not wait_for_process(probe, f"OpenVPN ({session_name})",
                                self.settings.vpn_timeout, self.settings.poll_interval):
            raise BackendTimeout(
                f"OpenVPN did not start within {self.settings.vpn_timeout}s "
                f"(inspect with: screen -r {session_name})"
            )
        return self._track(ManagedProcess(
            kind=ProcessKind.VPN,
            config_path=str(config_path),
            pid=started[0].pid,
            mode=mode,
        ))

    # Teardown

    def _kill_all(self, kind: ProcessKind) -> None:
        identity = self.identities[kind]
        found = self._find(kind)
        if not found:
            logger.info(f"No {identity} process running")
        for proc in found:
            logger.info(f"Killing {identity} (pid {proc.pid})")
            self.registry.kill(proc.pid)
        self._forget(kind)

    def ensure_stopped(self, kind: ProcessKind) -> None:
        """Fail unless no process of ``kind`` survives."""
        survivors = self._find(kind)
        if survivors:
            pids = ", ".join(str(p.pid) for p in survivors)
            raise ProcessStillRunning(f"{self.identities[kind]} is still running (pid {pids})")

    def kill_wifi(self) -> None:
        """Kill every supplicant, then set the WiFi interface down."""
        interface = self.settings.wifi_interface
        errors = run_steps([
            Step("Stopping wpa_supplicant", lambda: self._kill_all(ProcessKind.SUPPLICANT),
                 FailurePolicy.CONTINUE),
            Step(f"Bringing {interface} down", lambda: self.interface_down(interface),
                 FailurePolicy.CONTINUE),
        ])
        if errors:
            raise PartialFailure("WiFi was only partially stopped", errors)

    def kill_vpn(self) -> None:
        run_steps([Step("Stopping OpenVPN", lambda: self._kill_all(ProcessKind.VPN))])

    def kill_wired(self) -> None:
        interface = self.settings.wired_interface
        run_steps([Step(f"Bringing {interface} down", lambda: self.interface_down(interface))])

    # Liveness

    def is_running(self, kind: ProcessKind) -> bool:
        return bool(self._find(kind))

    def processes(self, kind: ProcessKind) -> List[ManagedProcess]:
        """Live processes of ``kind``; tracked handles found dead are dropped."""
        live = self._find(kind)
        live_pids = {p.pid for p in live}
        for process in self.managed:
            if process.kind is kind and process.pid is not None and process.pid not in live_pids:
                process.status = ProcessStatus.STOPPED
        self.managed = [p for p in self.managed if p.status is ProcessStatus.RUNNING]

        handles = []
        for proc in live:
            if kind is ProcessKind.SUPPLICANT:
                handles.append(ManagedProcess(kind, proc.option("-i"), proc.option("-c"), proc.pid))
            elif kind is ProcessKind.VPN:
                mode = VpnMode.SHARED if "--route-nopull" in proc.cmdline else VpnMode.DIRECT
                handles.append(ManagedProcess(kind, None, proc.option("--config"), proc.pid, mode=mode))
            else:
                interface = proc.cmdline[-1] if len(proc.cmdline) > 1 else None
                handles.append(ManagedProcess(kind, interface, None, proc.pid))
        return handles
