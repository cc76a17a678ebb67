"""Data models for network management."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class BackendKind(Enum):
    """Managed connectivity mechanisms"""
    WIFI = "wifi"
    WIRED = "wired"
    VPN = "vpn"


class ProcessKind(Enum):
    """Kinds of supervised external processes"""
    SUPPLICANT = "supplicant"
    DHCP = "dhcp"
    VPN = "vpn"


class ProcessStatus(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class VpnMode(Enum):
    """How the tunnel relates to the host's existing routes"""
    DIRECT = "direct"
    SHARED = "shared"


class StopTarget(Enum):
    """Targets accepted by stop, keyed by their command line names"""
    WIFI = "wifi"
    WIRED = "wire"
    VPN = "openvpn"
    ALL = "all"


class LinkKind(Enum):
    WIFI_ACTIVE = "wifi"
    WIRED_ACTIVE = "wired"
    BOTH = "both"
    NEITHER = "none"


@dataclass
class Profile:
    """Stored WiFi profile"""
    ssid: str
    path: Path
    config: Optional[str] = None


@dataclass
class ProcessInfo:
    """A live process as seen by the process registry"""
    pid: int
    cmdline: list[str] = field(default_factory=list)

    def option(self, flag: str) -> Optional[str]:
        """Return the value following ``flag`` on the command line."""
        try:
            index = self.cmdline.index(flag)
        except ValueError:
            return None
        if index + 1 < len(self.cmdline):
            return self.cmdline[index + 1]
        return None


@dataclass
class ManagedProcess:
    """Handle to a supervised external process"""
    kind: ProcessKind
    interface: Optional[str] = None
    config_path: Optional[str] = None
    pid: Optional[int] = None
    status: ProcessStatus = ProcessStatus.RUNNING
    mode: Optional[VpnMode] = None


@dataclass
class LinkState:
    """Wired and wireless links are independent sub-states"""
    wifi_profile: Optional[str] = None
    wifi: bool = False
    wired: bool = False

    @property
    def kind(self) -> LinkKind:
        if self.wifi and self.wired:
            return LinkKind.BOTH
        if self.wifi:
            return LinkKind.WIFI_ACTIVE
        if self.wired:
            return LinkKind.WIRED_ACTIVE
        return LinkKind.NEITHER


@dataclass
class VpnState:
    """VPN overlay, independent of the link type"""
    mode: Optional[VpnMode] = None
    config_path: Optional[str] = None
    sessions: int = 0

    @property
    def active(self) -> bool:
        return self.mode is not None


@dataclass
class ConnectionState:
    link: LinkState = field(default_factory=LinkState)
    vpn: VpnState = field(default_factory=VpnState)

    def to_dict(self) -> dict:
        return {
            "link": self.link.kind.value,
            "wifi": self.link.wifi,
            "wifi_profile": self.link.wifi_profile,
            "wired": self.link.wired,
            "vpn": self.vpn.mode.value if self.vpn.mode else None,
            "vpn_config": self.vpn.config_path,
            "vpn_sessions": self.vpn.sessions,
        }
