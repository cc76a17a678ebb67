from pathlib import Path

import pytest
from pydantic import ValidationError

from netswitch.network.exceptions import ConfigurationError
from netswitch.settings import CONFIG_ENV_VAR, Settings, load_settings


def write_config(path: Path, body: str) -> Path:
    path.write_text(body)
    return path


def test_load_settings_from_ini(tmp_path) -> None:
    config = write_config(tmp_path / "netswitch.conf", """\
[netswitch]
wifi_interface = wlp2s0
wired_interface = enp3s0
dhcp_client = dhclient
profile_dir = /srv/profiles
supplicant_driver = nl80211
dhcp_timeout = 45
default_profile_dhcp = yes
""")

    settings = load_settings(config)

    assert settings.wifi_interface == "wlp2s0"
    assert settings.wired_interface == "enp3s0"
    assert settings.dhcp_client == "dhclient"
    assert settings.profile_dir == Path("/srv/profiles")
    assert settings.default_profile_path == Path("/srv/profiles/wpa_supplicant.conf")
    assert settings.supplicant_driver == "nl80211"
    assert settings.dhcp_timeout == 45
    assert settings.default_profile_dhcp is True
    assert settings.vpn_session == "netswitch-vpn"


def test_missing_file_yields_defaults(tmp_path) -> None:
    assert load_settings(tmp_path / "absent.conf") == Settings()


def test_file_without_section_yields_defaults(tmp_path) -> None:
    config = write_config(tmp_path / "netswitch.conf", "[other]\nwifi_interface = wlan9\n")
    assert load_settings(config).wifi_interface == "wlan0"


@pytest.mark.parametrize("value", ["none", "", "/dev/null"])
def test_log_file_can_be_disabled(tmp_path, value) -> None:
    config = write_config(tmp_path / "netswitch.conf", f"[netswitch]\nlog_file = {value}\n")
    assert load_settings(config).log_file is None


def test_blank_driver_means_autodetect(tmp_path) -> None:
    config = write_config(tmp_path / "netswitch.conf", "[netswitch]\nsupplicant_driver =\n")
    assert load_settings(config).supplicant_driver is None


@pytest.mark.parametrize("body", [
    "[netswitch]\ndhcp_client = udhcpc\n",
    "[netswitch]\nwifi_iface = wlan1\n",
    "[netswitch]\nvpn_timeout = -1\n",
])
def test_invalid_settings_are_rejected(tmp_path, body) -> None:
    config = write_config(tmp_path / "netswitch.conf", body)
    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_environment_selects_config_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = write_config(tmp_path / "netswitch.conf", "[netswitch]\nwired_interface = eth1\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config))

    assert load_settings().wired_interface == "eth1"


def test_settings_are_frozen() -> None:
    settings = Settings()
    with pytest.raises(ValidationError):
        settings.wifi_interface = "wlan1"
