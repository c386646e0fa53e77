from mitmrouter.core.models import ApplianceConfig

LEASE_TIME = "12h"
AP_COUNTRY = "US"
AP_HW_MODE = "g"
AP_CHANNEL = 11


def render_dnsmasq(cfg: ApplianceConfig) -> str:
    return f"""interface={cfg.bridge_iface}
dhcp-range={cfg.dhcp_start},{cfg.dhcp_end},{cfg.lan_subnet},{LEASE_TIME}
dhcp-option=6,{cfg.dns_server}
"""


def render_hostapd(cfg: ApplianceConfig) -> str:
    # ieee80211w stays commented out: PMF is disabled.
    return f"""interface={cfg.wifi_iface}
bridge={cfg.bridge_iface}
ssid={cfg.wifi_ssid}
country_code={AP_COUNTRY}
hw_mode={AP_HW_MODE}
channel={AP_CHANNEL}
wpa=2
wpa_passphrase={cfg.wifi_password}
wpa_key_mgmt=WPA-PSK
wpa_pairwise=CCMP
ieee80211n=1
#ieee80211w=1 # PMF (Protected Management Frames)
"""
