import os

import pytest

from netswitch.network.exceptions import (
    DerivationFailed,
    InvalidProfileId,
    ProfileAlreadyExists,
    ProfileNotFound,
    StorageUnavailable,
)
from netswitch.network.profiles import ProfileStore


@pytest.fixture
def store(settings, host):
    return ProfileStore(settings, runner=host)


def test_list_excludes_default_in_directory_order(store, settings, write_profile) -> None:
    write_profile("office")
    write_profile("cafe")
    write_profile("wpa_supplicant")
    (settings.profile_dir / "notes.txt").write_text("ignored")
    (settings.profile_dir / "nested.conf").mkdir()

    expected = [
        name[:-len(".conf")] for name in os.listdir(settings.profile_dir)
        if name in ("office.conf", "cafe.conf")
    ]
    assert store.list() == expected
    assert sorted(store.list()) == ["cafe", "office"]


def test_list_fails_when_directory_missing(settings, host, tmp_path) -> None:
    store = ProfileStore(settings.model_copy(update={"profile_dir": tmp_path / "missing"}), runner=host)
    with pytest.raises(StorageUnavailable):
        store.list()


def test_add_then_list_and_read_without_plaintext_secret(store, host) -> None:
    profile = store.add("home", "secret123")

    assert "home" in store.list()
    blob = store.read("home")
    assert blob == profile.config
    assert "secret123" not in blob
    assert "psk=" in blob
    assert blob.startswith(f"ctrl_interface=DIR={store.control_socket_dir} GROUP=netdev\nupdate_config=1\n")
    assert host.commands == [["wpa_passphrase", "home"]]
    assert host.inputs == ["secret123\n"]


def test_added_profile_is_private(store) -> None:
    profile = store.add("home", "secret123")
    assert profile.path.stat().st_mode & 0o777 == 0o600


def test_add_rejects_existing_profile(store) -> None:
    store.add("home", "secret123")
    before = store.read("home")
    with pytest.raises(ProfileAlreadyExists):
        store.add("home", "other-secret")
    assert store.read("home") == before


def test_add_overwrite_replaces_profile(store) -> None:
    store.add("home", "secret123")
    before = store.read("home")
    store.add("home", "other-secret", overwrite=True)
    assert store.read("home") != before
    assert store.list() == ["home"]


def test_add_reports_derivation_failure(store, settings) -> None:
    with pytest.raises(DerivationFailed) as excinfo:
        store.add("home", "short")
    assert "short" not in str(excinfo.value)
    assert os.listdir(settings.profile_dir) == []


@pytest.mark.parametrize("ssid", ["", "   ", "../etc", ".hidden", "wpa_supplicant"])
def test_add_rejects_invalid_names(store, ssid) -> None:
    with pytest.raises(InvalidProfileId):
        store.add(ssid, "secret123")


def test_remove_missing_profile_leaves_storage_alone(store, settings, write_profile) -> None:
    write_profile("office")
    before = sorted(os.listdir(settings.profile_dir))

    with pytest.raises(ProfileNotFound):
        store.remove("home")
    with pytest.raises(ProfileNotFound):
        store.remove("wpa_supplicant")

    assert sorted(os.listdir(settings.profile_dir)) == before


def test_add_then_remove_leaves_no_residue(store, settings, write_profile) -> None:
    write_profile("office")
    before = sorted(os.listdir(settings.profile_dir))

    store.add("home", "secret123")
    store.remove("home")

    assert sorted(os.listdir(settings.profile_dir)) == before


def test_remove_sees_files_deleted_since_list(store, write_profile) -> None:
    path = write_profile("office")
    assert store.list() == ["office"]
    path.unlink()
    with pytest.raises(ProfileNotFound):
        store.remove("office")


def test_read_missing_profile(store) -> None:
    with pytest.raises(ProfileNotFound):
        store.read("home")


def test_identify_maps_config_paths_to_profiles(store, settings) -> None:
    assert store.identify(settings.profile_dir / "home.conf") == "home"
    assert store.identify(str(settings.default_profile_path)) is None
    assert store.identify("/tmp/elsewhere/home.conf") is None
    assert store.identify(None) is None


def test_ssid_containing_the_passphrase_is_accepted(store) -> None:
    profile = store.add("home-pass1234", "pass1234")

    assert 'ssid="home-pass1234"' in profile.config
    assert "#psk" not in profile.config
    psk_lines = [line for line in profile.config.splitlines() if line.strip().startswith("psk=")]
    assert len(psk_lines) == 1
    assert "pass1234" not in psk_lines[0]
