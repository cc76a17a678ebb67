"""Switch host connectivity between WiFi profiles, wired and OpenVPN."""

__version__ = "0.1.0"
