import hashlib
import os
import socket
from types import SimpleNamespace

import pytest

from netswitch.logging_utility import Logger
from netswitch.network.coordinator import ConnectionCoordinator
from netswitch.network.exceptions import CommandFailed
from netswitch.network.models import ProcessInfo
from netswitch.network.supervisor import ProcessRegistry
from netswitch.settings import Settings


class FakeHost(ProcessRegistry):
    """Command runner and process registry backed by an in-memory process table."""

    def __init__(self):
        self.commands: list[list[str]] = []
        self.inputs: list = []
        self.processes: dict[int, list[str]] = {}
        self.failures: dict[tuple, object] = {}
        self.addresses: dict[str, list] = {}
        self.killed: list[int] = []
        self.scan_output = ""
        self.vpn_starts = True
        self._next_pid = 1000

    def fail(self, prefix, error=None):
        self.failures[tuple(prefix)] = error

    def spawn(self, argv) -> int:
        pid = self._next_pid
        self._next_pid += 1
        self.processes[pid] = list(argv)
        return pid

    def give_address(self, interface, address="192.168.1.20"):
        self.addresses[interface] = [SimpleNamespace(family=socket.AF_INET, address=address)]

    def __call__(self, cmd, check=True, timeout=None, input=None):
        self.commands.append(list(cmd))
        self.inputs.append(input)
        for prefix, error in self.failures.items():
            if tuple(cmd[:len(prefix)]) == prefix:
                if error is None:
                    raise CommandFailed(cmd, 1, "", "simulated failure")
                raise error

        program = cmd[0]
        if program in ("wpa_supplicant", "dhcpcd", "dhclient"):
            self.spawn(cmd)
        elif program == "screen" and self.vpn_starts:
            self.spawn(cmd[cmd.index("openvpn"):])
        elif program == "wpa_passphrase":
            return self._passphrase(cmd, input)
        elif program == "iw":
            return self.scan_output, ""
        return "", ""

    @staticmethod
    def _passphrase(cmd, input):
        ssid = cmd[1]
        secret = (input or "").rstrip("\n")
        if not 8 <= len(secret) <= 63:
            raise CommandFailed(cmd, 1, "Passphrase must be 8..63 characters\n", "")
        psk = hashlib.pbkdf2_hmac("sha1", secret.encode(), ssid.encode(), 4096, 32).hex()
        stdout = (
            "# reading passphrase from stdin\n"
            "network={\n"
            f'\tssid="{ssid}"\n'
            f'\t#psk="{secret}"\n'
            f"\tpsk={psk}\n"
            "}\n"
        )
        return stdout, ""

    # ProcessRegistry

    def find(self, identity):
        return [
            ProcessInfo(pid=pid, cmdline=list(argv))
            for pid, argv in self.processes.items()
            if os.path.basename(argv[0]) == identity
        ]

    def kill(self, pid):
        self.killed.append(pid)
        self.processes.pop(pid, None)

    def net_if_addrs(self):
        return self.addresses


@pytest.fixture
def settings(tmp_path):
    profile_dir = tmp_path / "wpa_supplicant"
    profile_dir.mkdir()
    return Settings(
        profile_dir=profile_dir,
        control_socket_dir=tmp_path / "run",
        default_vpn_config=tmp_path / "client.conf",
        log_file=None,
        lock_file=tmp_path / "netswitch.lock",
        vpn_timeout=0.05,
        poll_interval=0.01,
    )


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def make_coordinator(settings, host):
    def build(euid=0, settings=settings):
        return ConnectionCoordinator.from_settings(
            settings,
            runner=host,
            registry=host,
            geteuid=lambda: euid,
            net_if_addrs=host.net_if_addrs,
        )
    return build


@pytest.fixture
def coordinator(make_coordinator):
    return make_coordinator()


@pytest.fixture
def write_profile(settings):
    def write(name, body="network={\n\tssid=\"x\"\n}\n"):
        path = settings.profile_dir / f"{name}.conf"
        path.write_text(body)
        return path
    return write


@pytest.fixture(autouse=True)
def quiet_logger():
    yield
    Logger().configure(None, echo=False)
