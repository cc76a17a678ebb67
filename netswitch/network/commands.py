"""Command templates and builders for network management."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .exceptions import ValidationError

# Marks an option that takes no value
FLAG = type(None)


@dataclass(frozen=True)
class Command:
    """Immutable argv builder; every ``with_*`` call returns a new command."""
    argv: List[str]
    options: Optional[Dict[str, type]] = field(default=None, compare=False)

    @classmethod
    def from_str(cls, cmd: str, options: Optional[Dict[str, type]] = None) -> 'Command':
        """Create command from string with optional option rules."""
        if not cmd.split():
            raise ValidationError("Command cannot be empty")
        return cls(cmd.split(), options)

    @property
    def program(self) -> str:
        return self.argv[0]

    def _extend(self, extra: Iterable[object]) -> 'Command':
        return Command(self.argv + [str(item) for item in extra], self.options)

    def _check_option(self, name: str, value: Optional[str]) -> str:
        """Validate ``name`` against the option rules; returns the ``--long-form``."""
        key = name.lstrip('-').replace('-', '_')
        if self.options is None:
            return f"--{key.replace('_', '-')}"
        if key not in self.options:
            known = ", ".join(f"--{k.replace('_', '-')}" for k in self.options)
            raise ValidationError(f"{self.program} has no option '{name}' (known: {known})")

        kind = self.options[key]
        if kind is FLAG:
            if value is not None:
                raise ValidationError(f"Option '{name}' of {self.program} takes no value")
        elif value is None:
            raise ValidationError(f"Option '{name}' of {self.program} requires a value")
        elif kind is not Path:
            try:
                kind(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid value '{value}' for option '{name}', expected {kind.__name__}")
        return f"--{key.replace('_', '-')}"

    def with_arg(self, arg: str) -> 'Command':
        return self._extend([arg])

    def with_args(self, *args: str) -> 'Command':
        return self._extend(args)

    def with_flag(self, flag: str, value: Optional[str] = None) -> 'Command':
        """Add a short ``-x [value]`` flag."""
        extra = [f"-{flag.lstrip('-')}"]
        if value is not None:
            extra.append(value)
        return self._extend(extra)

    def with_options(self, **options: Optional[str]) -> 'Command':
        """Add ``--long`` options, validated when the command has rules."""
        extra: List[object] = []
        for name, value in options.items():
            text = None if value is None else str(value)
            extra.append(self._check_option(name, text))
            if text is not None:
                extra.append(text)
        return self._extend(extra)

    def wrapped_by(self, wrapper: 'Command') -> 'Command':
        """Run this command as the trailing arguments of ``wrapper``."""
        return Command(wrapper.argv + self.argv, self.options)

    def build(self) -> List[str]:
        return list(self.argv)


OPENVPN_OPTIONS = {
    'config': Path,
    'route_nopull': FLAG,
}


IP = Command.from_str("ip")
IP_LINK_SET = IP.with_args("link", "set")

IW = Command.from_str("iw")

WPA_SUPPLICANT = Command.from_str("wpa_supplicant").with_flag("B")
WPA_PASSPHRASE = Command.from_str("wpa_passphrase")

DHCP_CLIENTS = {
    "dhcpcd": Command.from_str("dhcpcd"),
    "dhclient": Command.from_str("dhclient"),
}

SCREEN = Command.from_str("screen")

OPENVPN = Command.from_str("openvpn", options=OPENVPN_OPTIONS)
