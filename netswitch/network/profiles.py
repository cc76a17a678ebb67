"""WiFi profile storage.

Each profile is a wpa_supplicant configuration file named ``<ssid>.conf``
inside the profile directory. ``wpa_supplicant.conf`` in the same
directory is the default configuration and never listed as a profile.
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from .command_factory import NetCommandFactory
from .exceptions import (
    CommandFailed,
    CommandTimeout,
    DerivationFailed,
    InvalidProfileId,
    ProfileAlreadyExists,
    ProfileNotFound,
    ReadFailed,
    StorageUnavailable,
    WriteFailed,
)
from .models import Profile
from .utils import run_command
from ..logging_utility import logger
from ..settings import DEFAULT_PROFILE_NAME, PROFILE_SUFFIX, Settings


class ProfileStore:
    def __init__(self, settings: Settings, runner: Callable = run_command):
        self.directory = Path(settings.profile_dir)
        self.default_path = settings.default_profile_path
        self.control_socket_dir = settings.control_socket_dir
        self.ctrl_group = settings.ctrl_group
        self.timeout = settings.command_timeout
        self._run = runner

    def _preamble(self) -> str:
        return (
            f"ctrl_interface=DIR={self.control_socket_dir} GROUP={self.ctrl_group}\n"
            "update_config=1\n"
            "\n"
        )

    @staticmethod
    def _validate(ssid: str) -> None:
        if not ssid or not ssid.strip():
            raise InvalidProfileId("Profile name cannot be empty")
        if "/" in ssid or "\0" in ssid or ssid.startswith("."):
            raise InvalidProfileId(f"Invalid profile name '{ssid}'")
        if ssid == DEFAULT_PROFILE_NAME:
            raise InvalidProfileId(f"'{ssid}' is reserved for the default configuration")

    def path_for(self, ssid: str) -> Path:
        return self.directory / f"{ssid}{PROFILE_SUFFIX}"

    def has_default(self) -> bool:
        return self.default_path.is_file()

    def list(self) -> list[str]:
        """
        List stored profiles in directory order.

        Returns:
            list of profile names, default configuration excluded

        Raises:
            StorageUnavailable: if the profile directory is missing or unreadable
        """
        try:
            with os.scandir(self.directory) as entries:
                names = [
                    entry.name for entry in entries
                    if entry.name.endswith(PROFILE_SUFFIX) and entry.is_file()
                ]
        except OSError as e:
            raise StorageUnavailable(f"Profile directory {self.directory} is unavailable: {e}") from e
        stems = [name[:-len(PROFILE_SUFFIX)] for name in names]
        return [stem for stem in stems if stem and stem != DEFAULT_PROFILE_NAME]

    def exists(self, ssid: str) -> bool:
        return ssid in self.list()

    def read(self, ssid: str) -> str:
        if not self.exists(ssid):
            raise ProfileNotFound(f"Profile {ssid} not found")
        try:
            return self.path_for(ssid).read_text(encoding="utf-8")
        except OSError as e:
            raise ReadFailed(f"Could not read profile {ssid}: {e}") from e

    def get(self, ssid: str) -> Profile:
        return Profile(ssid=ssid, path=self.path_for(ssid), config=self.read(ssid))

    def derive(self, ssid: str, secret: str) -> str:
        """
        Derive a supplicant configuration from a passphrase.

        The passphrase is fed to wpa_passphrase on stdin, and every comment
        line of its output (including the ``#psk="..."`` echo) is dropped.

        Args:
            ssid: Network name
            secret: WPA passphrase

        Returns:
            str: Configuration text with the preamble prepended
        """
        try:
            stdout, _ = self._run(
                NetCommandFactory.derive_psk(ssid),
                timeout=self.timeout,
                input=f"{secret}\n",
            )
        except (CommandFailed, CommandTimeout) as e:
            # wpa_passphrase reports bad passphrases on stdout; keep the secret out of it
            reason = e.stdout.strip() if isinstance(e, CommandFailed) else str(e)
            raise DerivationFailed(f"wpa_passphrase failed for {ssid}: {reason}") from e

        lines = [line for line in stdout.splitlines() if not line.strip().startswith("#")]
        if not any(line.strip() == "network={" for line in lines):
            raise DerivationFailed(f"wpa_passphrase produced no network block for {ssid}")
        if secret and any(
            secret in line for line in lines if line.strip().startswith("psk=")
        ):
            raise DerivationFailed(f"wpa_passphrase output for {ssid} still contains the passphrase")
        return self._preamble() + "\n".join(lines).strip() + "\n"

    def _write_atomic(self, path: Path, content: str) -> None:
        tmp_path: Optional[str] = None
        try:
            # mkstemp creates the file with mode 0600
            fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise WriteFailed(f"Could not write {path}: {e}") from e

    def add(self, ssid: str, secret: str, overwrite: bool = False) -> Profile:
        """
        Create a profile from a passphrase.

        Args:
            ssid: Network name, also the profile name
            secret: WPA passphrase
            overwrite: Replace an existing profile of the same name

        Returns:
            Profile that was written
        """
        self._validate(ssid)
        if self.exists(ssid) and not overwrite:
            raise ProfileAlreadyExists(f"Profile {ssid} already exists")

        config = self.derive(ssid, secret)
        path = self.path_for(ssid)
        self._write_atomic(path, config)
        logger.info(f"Profile {ssid} saved to {path}")
        return Profile(ssid=ssid, path=path, config=config)

    def remove(self, ssid: str) -> None:
        # Enumerate again; the directory may have changed since the last list()
        if not self.exists(ssid):
            raise ProfileNotFound(f"Profile {ssid} not found")
        path = self.path_for(ssid)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ProfileNotFound(f"Profile {ssid} not found") from e
        except OSError as e:
            raise WriteFailed(f"Could not remove {path}: {e}") from e
        logger.info(f"Profile {ssid} removed")

    def identify(self, config_path: Union[str, Path, None]) -> Optional[str]:
        """Map a supplicant ``-c`` path back to a profile name."""
        if not config_path:
            return None
        path = Path(os.path.abspath(config_path))
        if path.parent != Path(os.path.abspath(self.directory)):
            return None
        if path.suffix != PROFILE_SUFFIX or path.stem == DEFAULT_PROFILE_NAME:
            return None
        return path.stem
