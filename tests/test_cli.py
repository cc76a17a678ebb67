import fcntl

import pytest

from netswitch.cli import main, resolve_vpn_args
from netswitch.network.exceptions import InvalidInvocation
from netswitch.network.models import VpnMode


def installed(program):
    return f"/usr/bin/{program}"


@pytest.fixture
def run(coordinator, settings):
    def invoke(*argv, coordinator=coordinator, which=installed, prompt=None):
        return main(
            list(argv),
            coordinator=coordinator,
            settings=settings,
            which=which,
            prompt=prompt or (lambda text: "secret123"),
        )
    return invoke


def test_list_prints_profiles(run, write_profile, capsys) -> None:
    write_profile("office")

    assert run("list") == 0
    assert capsys.readouterr().out.splitlines() == ["office"]


def test_list_works_without_root(run, make_coordinator, write_profile, capsys) -> None:
    write_profile("office")
    assert run("list", coordinator=make_coordinator(euid=1000)) == 0
    assert "office" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [
    [],
    ["bogus"],
    ["connect"],
    ["stop", "everything"],
    ["add", "psk"],
    ["connect", "openvpn", "sideways", "/etc/openvpn/other.conf"],
])
def test_bad_usage_exits_with_one(run, host, argv) -> None:
    assert run(*argv) == 1
    assert host.commands == []


@pytest.mark.parametrize("argv", [["connect"], ["add"]])
def test_missing_subcommand_is_usage_error_even_without_root(run, make_coordinator, host, capsys, argv) -> None:
    assert run(*argv, coordinator=make_coordinator(euid=1000)) == 1

    captured = capsys.readouterr()
    assert "usage:" in captured.err
    assert "required" in captured.err
    assert "root" not in captured.out
    assert host.commands == []


def test_state_change_without_root_runs_nothing(run, make_coordinator, host, capsys) -> None:
    assert run("connect", "wire", coordinator=make_coordinator(euid=1000)) == 1
    assert host.commands == []
    assert "root" in capsys.readouterr().out


def test_missing_programs_reported_together(run, host, caplog) -> None:
    def which(program):
        return None if program in ("iw", "openvpn") else installed(program)

    assert run("connect", "wire", which=which) == 1
    assert "iw, openvpn" in caplog.text
    assert host.commands == []


def test_busy_lock_fails_fast(run, host, settings) -> None:
    with open(settings.lock_file, "a") as handle:
        fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        assert run("connect", "wire") == 1
    assert host.commands == []


def test_connect_wifi(run, host, write_profile) -> None:
    write_profile("office")

    assert run("connect", "wifi", "office") == 0
    assert host.commands[-1] == ["dhcpcd", "wlan0"]


def test_connect_wifi_failure_exits_with_one(run, host, write_profile) -> None:
    write_profile("office")
    host.fail(["wpa_supplicant"])

    assert run("connect", "wifi", "office") == 1


def test_connect_openvpn_with_config_only(run, host, tmp_path) -> None:
    config = tmp_path / "other.ovpn"
    config.write_text("client\n")

    assert run("connect", "openvpn", str(config)) == 0
    assert host.commands == [["screen", "-dmS", "netswitch-vpn", "openvpn", "--config", str(config)]]


def test_connect_openvpn_shared(run, host, settings) -> None:
    settings.default_vpn_config.write_text("client\n")

    assert run("connect", "openvpn", "shared") == 0
    assert host.commands[-1][-1] == "--route-nopull"


def test_resolve_vpn_args() -> None:
    assert resolve_vpn_args(None, None) == (VpnMode.DIRECT, None)
    assert resolve_vpn_args("shared", "/a.ovpn") == (VpnMode.SHARED, "/a.ovpn")
    assert resolve_vpn_args("/a.ovpn", None) == (VpnMode.DIRECT, "/a.ovpn")
    with pytest.raises(InvalidInvocation):
        resolve_vpn_args("sideways", "/a.ovpn")


def test_stop_wifi(run, host) -> None:
    pid = host.spawn(["wpa_supplicant", "-B", "-i", "wlan0", "-c", "/a.conf"])

    assert run("stop", "wifi") == 0
    assert host.killed == [pid]


def test_add_psk_prompts_for_passphrase(run, host, settings) -> None:
    prompts = []

    def prompt(text):
        prompts.append(text)
        return "secret123"

    assert run("add", "psk", "home", prompt=prompt) == 0
    assert prompts == ["Passphrase for home: ", "Repeat passphrase: "]
    assert host.inputs[-1] == "secret123\n"
    assert (settings.profile_dir / "home.conf").exists()


def test_add_psk_mismatched_passphrases(run, host, settings) -> None:
    answers = iter(["secret123", "secret124"])

    assert run("add", "psk", "home", prompt=lambda text: next(answers)) == 1
    assert host.commands == []
    assert not (settings.profile_dir / "home.conf").exists()


def test_add_existing_needs_force(run, write_profile) -> None:
    write_profile("home")

    assert run("add", "psk", "home") == 1
    assert run("add", "psk", "home", "--force") == 0


def test_remove_missing_profile(run) -> None:
    assert run("remove", "home") == 1


def test_status_prints_state(run, capsys) -> None:
    assert run("status") == 0
    out = capsys.readouterr().out
    assert "link: none" in out
    assert "vpn: -" in out
