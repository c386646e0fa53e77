from typing import Callable, Dict

from .config import validate_config
from .models import ApplianceConfig

LABELS: Dict[str, str] = {
    "bridge_iface": "Bridge interface",
    "wan_iface": "WAN interface",
    "lan_iface": "LAN interface",
    "wifi_iface": "WiFi interface",
    "wifi_ssid": "WiFi SSID",
    "wifi_password": "WiFi password",
    "lan_ip": "LAN IP address",
    "lan_subnet": "LAN subnet mask",
    "dhcp_start": "DHCP range start",
    "dhcp_end": "DHCP range end",
    "dns_server": "DNS server for DHCP clients",
}


def edit_config(
    cfg: ApplianceConfig,
    ask: Callable[[str], str] = input,
    say: Callable[[str], None] = print,
) -> ApplianceConfig:
    """Walk every field, offering to change it. Returns a new validated config."""
    values = cfg.model_dump()
    for field, label in LABELS.items():
        answer = ask(f"{label} [{values[field]}] - change? (y/N) ").strip().lower()
        if answer not in ("y", "yes"):
            continue
        new = ask(f"New {label.lower()}: ").strip()
        if new:
            values[field] = new
        else:
            say(f"Keeping {values[field]}")
    return validate_config(values)
