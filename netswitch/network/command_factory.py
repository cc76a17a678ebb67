"""Factory for creating network-related commands."""

from pathlib import Path
from typing import Optional

from .commands import (
    DHCP_CLIENTS,
    IP_LINK_SET,
    IW,
    OPENVPN,
    SCREEN,
    WPA_PASSPHRASE,
    WPA_SUPPLICANT,
)
from .exceptions import ValidationError
from .models import VpnMode


class NetCommandFactory:
    """Factory for creating network management commands."""

    @staticmethod
    def interface_up(interface: str) -> list[str]:
        """Create command bringing an interface administratively up."""
        return IP_LINK_SET.with_args(interface, "up").build()

    @staticmethod
    def interface_down(interface: str) -> list[str]:
        """Create command setting an interface administratively down."""
        return IP_LINK_SET.with_args(interface, "down").build()

    @staticmethod
    def start_supplicant(
            interface: str,
            config_path: Path,
            driver: Optional[str] = None,
    ) -> list[str]:
        """Create background wpa_supplicant command."""
        cmd = WPA_SUPPLICANT.with_flag("i", interface).with_flag("c", str(config_path))
        if driver:
            cmd = cmd.with_flag("D", driver)
        return cmd.build()

    @staticmethod
    def derive_psk(ssid: str) -> list[str]:
        """Create wpa_passphrase command; the passphrase goes on stdin."""
        return WPA_PASSPHRASE.with_arg(ssid).build()

    @staticmethod
    def acquire_lease(client: str, interface: str) -> list[str]:
        """Create DHCP client command for the configured client."""
        try:
            command = DHCP_CLIENTS[client]
        except KeyError:
            raise ValidationError(
                f"Unsupported DHCP client '{client}'. "
                f"Valid clients are: {', '.join(DHCP_CLIENTS)}"
            )
        return command.with_arg(interface).build()

    @staticmethod
    def start_vpn(mode: VpnMode, config_path: Path, session_name: str) -> list[str]:
        """Create OpenVPN command running in a detached screen session.

        Shared mode ignores pushed routes so the tunnel coexists with the
        host routing table; direct mode lets the server take over routing.
        """
        cmd = OPENVPN.with_options(config=str(config_path))
        if mode is VpnMode.SHARED:
            cmd = cmd.with_options(route_nopull=None)
        session = SCREEN.with_flag("dmS", session_name)
        return cmd.wrapped_by(session).build()

    @staticmethod
    def scan(interface: str) -> list[str]:
        """Create hotspot scan command."""
        return IW.with_args("dev", interface, "scan").build()
