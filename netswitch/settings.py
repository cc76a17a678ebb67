"""Process-wide configuration, fixed at startup."""

import configparser
import os
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .network.exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = Path("/etc/netswitch/netswitch.conf")
CONFIG_ENV_VAR = "NETSWITCH_CONFIG"
SECTION = "netswitch"

DEFAULT_PROFILE_NAME = "wpa_supplicant"
PROFILE_SUFFIX = ".conf"


class Settings(BaseModel):
    """Immutable settings shared by every component."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    wifi_interface: str = "wlan0"
    wired_interface: str = "eth0"
    dhcp_client: Literal["dhcpcd", "dhclient"] = "dhcpcd"

    profile_dir: Path = Path("/etc/wpa_supplicant")
    control_socket_dir: Path = Path("/run/wpa_supplicant")
    ctrl_group: str = "netdev"
    supplicant_driver: Optional[str] = None

    default_vpn_config: Path = Path("/etc/openvpn/client.conf")
    vpn_session: str = "netswitch-vpn"

    log_file: Optional[Path] = Path("/var/log/netswitch.log")
    lock_file: Path = Path("/run/netswitch.lock")

    command_timeout: float = Field(default=10.0, gt=0)
    supplicant_timeout: float = Field(default=15.0, gt=0)
    dhcp_timeout: float = Field(default=30.0, gt=0)
    vpn_timeout: float = Field(default=20.0, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)

    # The default profile historically skips DHCP; enable to request a lease
    default_profile_dhcp: bool = False

    api_host: str = "127.0.0.1"
    api_port: int = Field(default=8000, gt=0, lt=65536)

    @field_validator("supplicant_driver", mode="before")
    @classmethod
    def _blank_driver(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_file", mode="before")
    @classmethod
    def _null_sink(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() == "none" or text == os.devnull:
            return None
        return value

    @property
    def default_profile_path(self) -> Path:
        return self.profile_dir / f"{DEFAULT_PROFILE_NAME}{PROFILE_SUFFIX}"


def resolve_config_file(config_file: Optional[Union[str, Path]] = None) -> Path:
    """Pick the settings file: explicit path, then environment, then default."""
    if config_file:
        return Path(config_file)
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_CONFIG_FILE


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from an INI file.

    A missing file yields the defaults, the way ``ConfigParser.read`` skips
    files it cannot find.

    Args:
        config_file: Optional explicit path to the INI file

    Returns:
        Settings instance
    """
    config = configparser.ConfigParser()
    config.read(resolve_config_file(config_file))
    if not config.has_section(SECTION):
        return Settings()
    values = {key: value for key, value in config[SECTION].items()}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {resolve_config_file(config_file)}:\n{e}") from e
