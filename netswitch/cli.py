"""Command line interface for netswitch."""

import argparse
import getpass
import shutil
import sys
from typing import Callable, Optional

from .logging_utility import Logger, logger
from .network.coordinator import ConnectionCoordinator
from .network.exceptions import ConfigurationError, InvalidInvocation, NetSwitchError, ProfileError
from .network.models import StopTarget, VpnMode
from .network.utils import check_dependencies, coordinator_lock, required_programs
from .settings import Settings, load_settings

# Commands that never change host state
READ_ONLY_COMMANDS = {"list", "status"}
VPN_MODES = [mode.value for mode in VpnMode]


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that reports bad usage with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        raise InvalidInvocation(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="netswitch", description="Switch between WiFi profiles, wired and OpenVPN.")
    parser.add_argument("--config", help="settings file (default: $NETSWITCH_CONFIG or /etc/netswitch/netswitch.conf)")
    commands = parser.add_subparsers(dest="command", parser_class=_Parser)

    commands.add_parser("list", help="list stored WiFi profiles")
    commands.add_parser("scan", help="scan for visible networks")
    commands.add_parser("status", help="show active backends")

    connect = commands.add_parser("connect", help="bring up a backend")
    backends = connect.add_subparsers(dest="backend", parser_class=_Parser, required=True)
    wifi = backends.add_parser("wifi", help="connect to a profile, or the default configuration")
    wifi.add_argument("profile", nargs="?")
    backends.add_parser("wire", help="bring up the wired interface")
    openvpn = backends.add_parser("openvpn", help="start an OpenVPN session")
    openvpn.add_argument("mode", nargs="?", help="direct (default) or shared")
    openvpn.add_argument("vpn_config", nargs="?", metavar="config")

    stop = commands.add_parser("stop", help="tear down a backend")
    stop.add_argument("target", choices=[target.value for target in StopTarget])

    add = commands.add_parser("add", help="store a new WiFi profile")
    kinds = add.add_subparsers(dest="kind", parser_class=_Parser, required=True)
    psk = kinds.add_parser("psk", help="WPA-PSK network; the passphrase is prompted for")
    psk.add_argument("ssid")
    psk.add_argument("--force", action="store_true", help="replace an existing profile")

    remove = commands.add_parser("remove", help="delete a stored WiFi profile")
    remove.add_argument("ssid")
    return parser


def resolve_vpn_args(mode: Optional[str], config: Optional[str]) -> tuple[VpnMode, Optional[str]]:
    """Accept ``[mode] [config]``, letting a lone non-mode argument be the config."""
    if mode is None:
        return VpnMode.DIRECT, config
    if mode in VPN_MODES:
        return VpnMode(mode), config
    if config is None:
        return VpnMode.DIRECT, mode
    raise InvalidInvocation(f"Unknown OpenVPN mode '{mode}' (choose from {', '.join(VPN_MODES)})")


def prompt_secret(ssid: str, prompt: Callable[[str], str] = getpass.getpass) -> str:
    secret = prompt(f"Passphrase for {ssid}: ")
    if prompt("Repeat passphrase: ") != secret:
        raise ProfileError("Passphrases do not match")
    return secret


def dispatch(args: argparse.Namespace, coordinator: ConnectionCoordinator,
             prompt: Callable[[str], str] = getpass.getpass) -> None:
    if args.command == "list":
        for name in coordinator.list_profiles():
            print(name)
    elif args.command == "scan":
        for ssid in coordinator.scan():
            print(ssid)
    elif args.command == "status":
        state = coordinator.status()
        for key, value in state.to_dict().items():
            print(f"{key}: {'-' if value is None else value}")
    elif args.command == "connect":
        if args.backend == "wifi":
            coordinator.connect_wifi(args.profile)
        elif args.backend == "wire":
            coordinator.connect_wired()
        else:
            mode, config = resolve_vpn_args(args.mode, args.vpn_config)
            coordinator.connect_vpn(mode, config)
    elif args.command == "stop":
        coordinator.stop(args.target)
    elif args.command == "add":
        coordinator.add_profile(args.ssid, prompt_secret(args.ssid, prompt), overwrite=args.force)
    elif args.command == "remove":
        coordinator.remove_profile(args.ssid)
    else:
        raise InvalidInvocation("no command given")


def main(
        argv: Optional[list[str]] = None,
        coordinator: Optional[ConnectionCoordinator] = None,
        settings: Optional[Settings] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
        prompt: Callable[[str], str] = getpass.getpass,
) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if args.command is None:
            raise InvalidInvocation("no command given")
    except InvalidInvocation as e:
        print(f"netswitch: {e}", file=sys.stderr)
        return 1

    if settings is None:
        try:
            settings = load_settings(args.config)
        except ConfigurationError as e:
            print(f"netswitch: {e}", file=sys.stderr)
            return 1
    try:
        Logger().configure(settings.log_file)
    except OSError as e:
        print(f"netswitch: cannot open log file {settings.log_file}: {e}", file=sys.stderr)
        Logger().configure(None)
    if coordinator is None:
        coordinator = ConnectionCoordinator.from_settings(settings)

    try:
        if args.command in READ_ONLY_COMMANDS:
            dispatch(args, coordinator, prompt)
        else:
            coordinator.require_privilege()
            check_dependencies(required_programs(settings.dhcp_client), which=which)
            with coordinator_lock(settings.lock_file):
                dispatch(args, coordinator, prompt)
    except InvalidInvocation as e:
        parser.print_usage(sys.stderr)
        logger.error(str(e))
        return 1
    except NetSwitchError as e:
        logger.error(str(e))
        return 1
    return 0
