"""Connection state coordination across the WiFi, wired and VPN backends."""

import os
from pathlib import Path
from typing import Callable, Optional, Union

from .exceptions import (
    BackendError,
    ConnectionFailed,
    NoDefaultProfile,
    PartialFailure,
)
from .models import (
    BackendKind,
    ConnectionState,
    LinkState,
    ManagedProcess,
    ProcessKind,
    StopTarget,
    VpnMode,
    VpnState,
)
from .profiles import ProfileStore
from .scan import ScanQuery
from .steps import FailurePolicy, Step, run_steps
from .supervisor import ProcessRegistry, ProcessSupervisor
from .utils import ensure_privileged, inspect_vpn_config, run_command
from ..logging_utility import logger
from ..settings import Settings


class ConnectionCoordinator:
    """
    Decides which backend may be active and sequences bring-up and tear-down.

    WiFi and wired links are independent of each other; the VPN is an
    overlay on either. Every operation is best-effort: a failing step aborts
    the operation but nothing already done is rolled back, so callers
    reach a clean baseline with ``stop``.
    """

    def __init__(
            self,
            settings: Settings,
            store: Optional[ProfileStore] = None,
            supervisor: Optional[ProcessSupervisor] = None,
            scanner: Optional[ScanQuery] = None,
            geteuid: Callable[[], int] = os.geteuid,
    ):
        self.settings = settings
        self.store = store or ProfileStore(settings)
        self.supervisor = supervisor or ProcessSupervisor(settings)
        self.scanner = scanner or ScanQuery(settings)
        self._geteuid = geteuid
        self.state = ConnectionState()

    @classmethod
    def from_settings(
            cls,
            settings: Settings,
            runner: Callable = run_command,
            registry: Optional[ProcessRegistry] = None,
            geteuid: Callable[[], int] = os.geteuid,
            **supervisor_options,
    ) -> 'ConnectionCoordinator':
        """Build every component around one command runner."""
        return cls(
            settings,
            store=ProfileStore(settings, runner=runner),
            supervisor=ProcessSupervisor(settings, runner=runner, registry=registry, **supervisor_options),
            scanner=ScanQuery(settings, runner=runner),
            geteuid=geteuid,
        )

    def require_privilege(self) -> None:
        ensure_privileged(self._geteuid)

    # WiFi

    def connect_wifi(self, profile: Optional[str] = None) -> ManagedProcess:
        """
        Switch WiFi to a stored profile, or to the default configuration.

        Any running supplicant is killed first so at most one remains.

        Args:
            profile: Profile name; None selects wpa_supplicant.conf

        Returns:
            ManagedProcess for the new supplicant

        Raises:
            NoDefaultProfile: no profile given and no default configuration
            ConnectionFailed: a bring-up step failed
        """
        self.require_privilege()
        interface = self.settings.wifi_interface

        if profile is None:
            if not self.store.has_default():
                raise NoDefaultProfile(f"Default profile {self.store.default_path} does not exist")
            config = self.store.default_path
            want_lease = self.settings.default_profile_dhcp
            label = "default profile"
        else:
            self.store.read(profile)
            config = self.store.path_for(profile)
            want_lease = True
            label = f"profile {profile}"

        logger.info(f"Connecting WiFi on {interface} using {label}")
        started: list[ManagedProcess] = []
        steps = [
            Step("Resetting WiFi", self.supervisor.kill_wifi, FailurePolicy.CONTINUE),
            # Only an interface-down failure may be tolerated; a live supplicant aborts
            Step(
                "Checking no wpa_supplicant remains",
                lambda: self.supervisor.ensure_stopped(ProcessKind.SUPPLICANT),
            ),
            Step(
                f"Starting wpa_supplicant for {label}",
                lambda: started.append(self.supervisor.start_wifi(interface, config)),
            ),
        ]
        if want_lease:
            steps.append(Step(
                f"Requesting DHCP lease on {interface}",
                lambda: self.supervisor.acquire_lease(interface),
            ))

        self.state.link.wifi = False
        self.state.link.wifi_profile = None
        try:
            run_steps(steps)
        except BackendError as e:
            logger.error(f"WiFi connection with {label} failed")
            raise ConnectionFailed(BackendKind.WIFI, str(e)) from e

        self.state.link.wifi = True
        self.state.link.wifi_profile = profile
        logger.info(f"WiFi connected using {label}")
        return started[0]

    # Wired

    def connect_wired(self) -> None:
        self.require_privilege()
        interface = self.settings.wired_interface
        logger.info(f"Connecting wired interface {interface}")
        try:
            self.supervisor.start_wired(interface)
        except BackendError as e:
            logger.error(f"Wired connection on {interface} failed")
            raise ConnectionFailed(BackendKind.WIRED, str(e)) from e
        self.state.link.wired = True
        logger.info(f"Wired interface {interface} connected")

    # VPN

    def connect_vpn(
            self,
            mode: Union[VpnMode, str] = VpnMode.DIRECT,
            config_path: Optional[Union[str, Path]] = None,
    ) -> ManagedProcess:
        """
        Start an OpenVPN session.

        An already running session is left alone and a second one is
        started next to it.

        Args:
            mode: Direct (server routes) or shared (--route-nopull)
            config_path: OpenVPN configuration; defaults to the configured one

        Returns:
            ManagedProcess for the VPN client
        """
        self.require_privilege()
        mode = VpnMode(mode)
        config = Path(config_path) if config_path else Path(self.settings.default_vpn_config)
        logger.info(f"Connecting OpenVPN ({mode.value}) using {config}")

        if not config.is_file():
            logger.error(f"OpenVPN configuration {config} not found")
            raise ConnectionFailed(BackendKind.VPN, f"OpenVPN configuration {config} not found")
        try:
            missing = inspect_vpn_config(config)
        except OSError as e:
            raise ConnectionFailed(BackendKind.VPN, f"Cannot read {config}: {e}") from e
        for name in missing:
            logger.warning(f"{config} references missing file: {name}")

        running = self.supervisor.processes(ProcessKind.VPN)
        if running:
            logger.warning(f"{len(running)} OpenVPN session(s) already running; starting another")

        try:
            process = self.supervisor.start_vpn(mode, config, self.settings.vpn_session)
        except BackendError as e:
            logger.error(f"OpenVPN connection using {config} failed")
            raise ConnectionFailed(BackendKind.VPN, str(e)) from e

        self.state.vpn = VpnState(mode=mode, config_path=str(config), sessions=len(running) + 1)
        logger.info(f"OpenVPN session {self.settings.vpn_session} started")
        return process

    # Teardown

    def stop(self, target: Union[StopTarget, str]) -> None:
        """
        Stop one backend, or all of them.

        ``all`` stops WiFi, wired and VPN, attempting each even when an
        earlier one fails.
        """
        self.require_privilege()
        target = StopTarget(target)
        logger.info(f"Stopping {target.value}")

        if target is StopTarget.WIFI:
            try:
                self.supervisor.kill_wifi()
            finally:
                self.state.link = LinkState(wired=self.state.link.wired)
        elif target is StopTarget.WIRED:
            self.supervisor.kill_wired()
            self.state.link.wired = False
        elif target is StopTarget.VPN:
            self.supervisor.kill_vpn()
            self.state.vpn = VpnState()
        else:
            errors = run_steps([
                Step("Stopping WiFi", self.supervisor.kill_wifi, FailurePolicy.CONTINUE),
                Step("Stopping wired", self.supervisor.kill_wired, FailurePolicy.CONTINUE),
                Step("Stopping OpenVPN", self.supervisor.kill_vpn, FailurePolicy.CONTINUE),
            ])
            self.state = ConnectionState()
            if errors:
                raise PartialFailure("Some backends could not be stopped", errors)
        logger.info(f"Stopped {target.value}")

    # Profiles and scanning

    def list_profiles(self) -> list[str]:
        return self.store.list()

    def add_profile(self, ssid: str, secret: str, overwrite: bool = False) -> None:
        self.require_privilege()
        self.store.add(ssid, secret, overwrite=overwrite)

    def remove_profile(self, ssid: str) -> None:
        self.require_privilege()
        self.store.remove(ssid)

    def scan(self, interface: Optional[str] = None) -> list[str]:
        self.require_privilege()
        return self.scanner.scan(interface or self.settings.wifi_interface)

    # Reconciliation

    def status(self) -> ConnectionState:
        """Rebuild the connection state from live processes and interfaces."""
        supplicants = self.supervisor.processes(ProcessKind.SUPPLICANT)
        wifi_process = next(
            (p for p in supplicants if p.interface == self.settings.wifi_interface),
            None,
        )
        link = LinkState(
            wifi=wifi_process is not None,
            wifi_profile=self.store.identify(wifi_process.config_path) if wifi_process else None,
            wired=self.supervisor.interface_has_address(self.settings.wired_interface),
        )

        sessions = self.supervisor.processes(ProcessKind.VPN)
        vpn = VpnState()
        if sessions:
            vpn = VpnState(mode=sessions[0].mode, config_path=sessions[0].config_path, sessions=len(sessions))

        self.state = ConnectionState(link=link, vpn=vpn)
        return self.state
