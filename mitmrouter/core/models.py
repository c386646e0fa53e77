import ipaddress
from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

IFNAMSIZ = 15


def _check_text(value: str) -> str:
    if "\n" in value or "\r" in value or '"' in value:
        raise ValueError("must not contain newlines or double quotes")
    return value


class ApplianceConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    bridge_iface: str = "br0"
    wan_iface: str = "eth0"
    lan_iface: str = "eth1"
    wifi_iface: str = "wlan0"
    wifi_ssid: str = "setec_astronomy"
    wifi_password: str = "mypassword"

    lan_ip: str = "192.168.200.1"
    lan_subnet: str = "255.255.255.0"
    dhcp_start: str = "192.168.200.10"
    dhcp_end: str = "192.168.200.100"
    dns_server: str = "1.1.1.1"

    @field_validator("bridge_iface", "wan_iface", "lan_iface", "wifi_iface")
    @classmethod
    def check_iface_name(cls, v: str) -> str:
        if not v or len(v) > IFNAMSIZ:
            raise ValueError(f"interface name must be 1..{IFNAMSIZ} characters")
        if any(c.isspace() for c in v) or "/" in v:
            raise ValueError("interface name must not contain whitespace or '/'")
        return _check_text(v)

    @field_validator("wifi_ssid")
    @classmethod
    def check_ssid(cls, v: str) -> str:
        if not 1 <= len(v.encode("utf-8")) <= 32:
            raise ValueError("SSID must be 1..32 bytes")
        return _check_text(v)

    @field_validator("wifi_password")
    @classmethod
    def check_passphrase(cls, v: str) -> str:
        # hostapd rejects WPA-PSK passphrases outside 8..63 characters
        if not 8 <= len(v) <= 63:
            raise ValueError("WPA2 passphrase must be 8..63 characters")
        return _check_text(v)

    @field_validator("lan_ip", "dhcp_start", "dhcp_end", "dns_server")
    @classmethod
    def check_ipv4(cls, v: str) -> str:
        try:
            ipaddress.IPv4Address(v)
        except ValueError:
            raise ValueError(f"{v!r} is not an IPv4 address") from None
        return v

    @field_validator("lan_subnet")
    @classmethod
    def check_netmask(cls, v: str) -> str:
        try:
            net = ipaddress.IPv4Network(f"0.0.0.0/{v}")
        except ValueError:
            raise ValueError(f"{v!r} is not a valid netmask") from None
        # IPv4Network also accepts hostmasks such as 0.0.0.255
        if str(net.netmask) != v:
            raise ValueError(f"{v!r} is not a valid netmask")
        return v

    @model_validator(mode="after")
    def check_addressing(self) -> "ApplianceConfig":
        net = self.lan_network
        start = ipaddress.IPv4Address(self.dhcp_start)
        end = ipaddress.IPv4Address(self.dhcp_end)
        lan = ipaddress.IPv4Address(self.lan_ip)

        if start > end:
            raise ValueError("DHCP range start must not be after its end")
        if start not in net or end not in net:
            raise ValueError(f"DHCP range must lie within {net}")
        if start < lan < end:
            raise ValueError("LAN address must not fall inside the DHCP range")
        return self

    @property
    def lan_network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(f"{self.lan_ip}/{self.lan_subnet}", strict=False)

    @property
    def lan_interface(self) -> ipaddress.IPv4Interface:
        return ipaddress.IPv4Interface(f"{self.lan_ip}/{self.lan_subnet}")


class Redirect(BaseModel):
    """Transparent TCP redirect of one destination to a local port."""

    model_config = ConfigDict(frozen=True)

    destination: str
    port: int = Field(ge=1, le=65535)
    to_port: int = Field(ge=1, le=65535)

    @field_validator("destination")
    @classmethod
    def check_destination(cls, v: str) -> str:
        try:
            ipaddress.IPv4Network(v, strict=False)
        except ValueError:
            raise ValueError(f"{v!r} is not an IPv4 address or network") from None
        return v

    @classmethod
    def parse(cls, text: str) -> "Redirect":
        parts = text.strip().split(":")
        if len(parts) != 3:
            raise ValueError(f"redirect {text!r} must look like dst:port:to_port")
        dst, port, to_port = parts
        return cls(destination=dst, port=int(port), to_port=int(to_port))


@dataclass(frozen=True)
class NetworkTopology:
    bridge: str
    wan: str
    lan: str
    wifi: str
    address: ipaddress.IPv4Interface

    @classmethod
    def from_config(cls, cfg: ApplianceConfig) -> "NetworkTopology":
        return cls(
            bridge=cfg.bridge_iface,
            wan=cfg.wan_iface,
            lan=cfg.lan_iface,
            wifi=cfg.wifi_iface,
            address=cfg.lan_interface,
        )

    @property
    def members(self) -> List[str]:
        return [self.lan, self.wifi]
