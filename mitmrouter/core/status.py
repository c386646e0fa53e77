from typing import Dict, List

from .models import ApplianceConfig


def _status_cmds(cfg: ApplianceConfig) -> Dict[str, List[str]]:
    return {
        "ip_link": ["ip", "-br", "link"],
        "ip_addr": ["ip", "-br", "addr", "show", "dev", cfg.bridge_iface],
        "bridge": ["bridge", "link", "show"],
        "iptables_forward": ["iptables", "-S", "FORWARD"],
        "iptables_nat": ["iptables", "-t", "nat", "-S"],
        "dnsmasq": ["pgrep", "-a", "dnsmasq"],
        "hostapd": ["pgrep", "-a", "hostapd"],
    }


def status_snapshot(cfg: ApplianceConfig, runner) -> dict:
    out = {}
    for k, cmd in _status_cmds(cfg).items():
        res = runner.run(cmd)
        out[k] = res.output if res.ok else f"ERROR: {res.output or res.outcome.value}"
    return out
