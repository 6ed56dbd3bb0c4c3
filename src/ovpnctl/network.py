"""Detect VPN-like network interfaces, independent of any supervised process."""

from __future__ import annotations

import psutil

VPN_INTERFACE_MARKERS: tuple[str, ...] = (
    "tun",
    "tap",
    "ppp",
    "vpn",
    "nord",
    "express",
    "surfshark",
    "cyberghost",
    "tunnel",
    "openvpn",
    "wireguard",
)


def _up_interfaces() -> list[str]:
    return [name for name, stats in psutil.net_if_stats().items() if stats.isup]


def detect_vpn_interfaces(markers: tuple[str, ...] = VPN_INTERFACE_MARKERS) -> list[str]:
    """Names of up interfaces that look like VPN tunnels."""
    return sorted(
        name
        for name in _up_interfaces()
        if any(marker in name.lower() for marker in markers)
    )


def has_vpn_interface() -> bool:
    return bool(detect_vpn_interfaces())


def is_openvpn_interface_up() -> bool:
    """Whether an interface explicitly named for OpenVPN is up."""
    return any("openvpn" in name.lower() for name in _up_interfaces())
