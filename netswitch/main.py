"""HTTP control API over the connection coordinator."""

import sys
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .logging_utility import Logger, logger
from .network.coordinator import ConnectionCoordinator
from .network.exceptions import (
    CoordinatorBusy,
    InvalidInvocation,
    InvalidProfileId,
    NetSwitchError,
    NoDefaultProfile,
    PrivilegeError,
    ProfileAlreadyExists,
    ProfileNotFound,
    StorageError,
)
from .network.models import StopTarget, VpnMode
from .network.utils import check_dependencies, coordinator_lock, ensure_privileged, required_programs
from .settings import Settings, load_settings

STATUS_CODES = [
    (PrivilegeError, 403),
    ((ProfileNotFound, NoDefaultProfile), 404),
    ((ProfileAlreadyExists, CoordinatorBusy), 409),
    ((InvalidProfileId, InvalidInvocation), 422),
    (StorageError, 503),
]


class ProfileCreate(BaseModel):
    ssid: str
    passphrase: str
    overwrite: bool = False


class WifiRequest(BaseModel):
    profile: Optional[str] = None


class VpnRequest(BaseModel):
    mode: VpnMode = VpnMode.DIRECT
    config: Optional[str] = None


def status_code_for(error: NetSwitchError) -> int:
    for error_types, code in STATUS_CODES:
        if isinstance(error, error_types):
            return code
    return 500


def create_app(
        coordinator: Optional[ConnectionCoordinator] = None,
        settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or load_settings()
    coordinator = coordinator or ConnectionCoordinator.from_settings(settings)
    app = FastAPI(title="netswitch")

    def handle(action: Callable, description: str, locked: bool = True):
        """Run ``action``, holding the coordinator lock when it changes state."""
        try:
            if not locked:
                return action()
            with coordinator_lock(settings.lock_file):
                return action()
        except NetSwitchError as e:
            logger.error(f"Error {description}: {str(e)}")
            raise HTTPException(status_code=status_code_for(e), detail=str(e))

    @app.get("/profiles")
    def list_profiles():
        """Stored WiFi profiles"""
        return {"profiles": handle(coordinator.list_profiles, "listing profiles", locked=False)}

    @app.post("/profiles", status_code=201)
    def add_profile(profile: ProfileCreate):
        handle(
            lambda: coordinator.add_profile(profile.ssid, profile.passphrase, overwrite=profile.overwrite),
            f"adding profile {profile.ssid}",
        )
        return {"status": "success", "message": f"Profile {profile.ssid} saved"}

    @app.delete("/profiles/{ssid}")
    def remove_profile(ssid: str):
        handle(lambda: coordinator.remove_profile(ssid), f"removing profile {ssid}")
        return {"status": "success", "message": f"Profile {ssid} removed"}

    @app.get("/scan")
    def scan():
        """Networks visible on the WiFi interface"""
        return {"networks": handle(coordinator.scan, "scanning")}

    @app.get("/status")
    def status():
        state = handle(coordinator.status, "reading status", locked=False)
        return state.to_dict()

    @app.post("/connect/wifi")
    def connect_wifi(request: Optional[WifiRequest] = None):
        profile = request.profile if request else None
        process = handle(lambda: coordinator.connect_wifi(profile), "connecting WiFi")
        return {"status": "success", "profile": profile, "pid": process.pid}

    @app.post("/connect/wire")
    def connect_wired():
        handle(coordinator.connect_wired, "connecting wired")
        return {"status": "success", "interface": settings.wired_interface}

    @app.post("/connect/openvpn")
    def connect_vpn(request: Optional[VpnRequest] = None):
        request = request or VpnRequest()
        process = handle(lambda: coordinator.connect_vpn(request.mode, request.config), "connecting OpenVPN")
        return {
            "status": "success",
            "mode": request.mode.value,
            "config": process.config_path,
            "pid": process.pid,
        }

    @app.post("/stop/{target}")
    def stop(target: StopTarget):
        handle(lambda: coordinator.stop(target), f"stopping {target.value}")
        return {"status": "success", "message": f"Stopped {target.value}"}

    return app


def run() -> int:
    """Entry point for the control API server."""
    try:
        settings = load_settings()
        Logger().configure(settings.log_file)
        ensure_privileged()
        check_dependencies(required_programs(settings.dhcp_client))
    except (NetSwitchError, OSError) as e:
        print(f"netswitch-api: {e}", file=sys.stderr)
        return 1

    logger.info("Starting netswitch control API")
    uvicorn.run(create_app(settings=settings), host=settings.api_host, port=settings.api_port)
    return 0


if __name__ == '__main__':
    sys.exit(run())
