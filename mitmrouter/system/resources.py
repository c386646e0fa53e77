import logging
from typing import List, Sequence

from mitmrouter.core.models import NetworkTopology, Redirect
from mitmrouter.system.runner import Policy, run_step

log = logging.getLogger("mitmrouter.resources")

# hostapd is started detached, so it has to be reaped here as well.
STALE_PROCESSES = ("wpa_supplicant", "dnsmasq", "hostapd")


def _bridge_cmds(tool: str):
    if tool == "iproute2":
        return (
            lambda br: ["ip", "link", "add", "name", br, "type", "bridge"],
            lambda br, dev: ["ip", "link", "set", dev, "master", br],
            lambda br: ["ip", "link", "del", br],
        )
    return (
        lambda br: ["brctl", "addbr", br],
        lambda br, dev: ["brctl", "addif", br, dev],
        lambda br: ["brctl", "delbr", br],
    )


def firewall_cmds(topo: NetworkTopology, redirects: Sequence[Redirect] = ()) -> List[List[str]]:
    """iptables invocations for NAT + forwarding, flushes first."""
    cmds = [
        ["iptables", "-F"],
        ["iptables", "-t", "nat", "-F"],
        ["iptables", "-t", "nat", "-A", "POSTROUTING", "-o", topo.wan, "-j", "MASQUERADE"],
        ["iptables", "-A", "FORWARD", "-m", "conntrack", "--ctstate", "RELATED,ESTABLISHED", "-j", "ACCEPT"],
        ["iptables", "-A", "FORWARD", "-i", topo.bridge, "-o", topo.wan, "-j", "ACCEPT"],
    ]
    for r in redirects:
        cmds.append(
            [
                "iptables", "-t", "nat", "-A", "PREROUTING",
                "-i", topo.bridge, "-p", "tcp", "-d", r.destination,
                "--dport", str(r.port), "-j", "REDIRECT", "--to-ports", str(r.to_port),
            ]
        )
    return cmds


class ResourceController:
    def __init__(self, runner, bridge_tool: str = "brctl", redirects: Sequence[Redirect] = ()):
        self.runner = runner
        self.bridge_tool = bridge_tool
        self.redirects = list(redirects)
        self._addbr, self._addif, self._delbr = _bridge_cmds(bridge_tool)

    def _do(self, cmd: List[str], step: str, policy: Policy = Policy.FATAL) -> None:
        run_step(self.runner, cmd, policy, step)

    def reset_all(self, topo: NetworkTopology) -> None:
        """Return interfaces, bridge and helpers to a clean state. Never raises."""
        log.info("== Stopping router services")
        for name in STALE_PROCESSES:
            self._do(["killall", name], f"stop {name}", Policy.TOLERATE)

        log.info("== Resetting all network interfaces")
        for iface in (topo.lan, topo.bridge, topo.wifi):
            self._do(["ip", "link", "set", iface, "down"], f"bring {iface} down", Policy.TOLERATE)

        self._do(self._delbr(topo.bridge), f"delete bridge {topo.bridge}", Policy.TOLERATE)

    def establish(self, topo: NetworkTopology) -> None:
        """Build the bridge, NAT rules and address. Any failure raises.

        IPv4 forwarding is switched on here and left on by reset_all; its
        prior value is not known to a later down run.
        """
        log.info("== Bringing up interfaces and bridge")
        for iface in (topo.wifi, topo.wan, topo.lan):
            self._do(["ip", "link", "set", iface, "up"], f"bring {iface} up")
        self._do(self._addbr(topo.bridge), f"create bridge {topo.bridge}")
        for member in topo.members:
            self._do(self._addif(topo.bridge, member), f"add {member} to {topo.bridge}")
        self._do(["ip", "link", "set", topo.bridge, "up"], f"bring {topo.bridge} up")

        log.info("== Setting up iptables")
        for cmd in firewall_cmds(topo, self.redirects):
            self._do(cmd, "iptables " + " ".join(cmd[1:]))

        log.info("== Setting static IP on bridge interface")
        self._do(
            ["ip", "addr", "add", topo.address.with_prefixlen, "dev", topo.bridge],
            f"assign {topo.address} to {topo.bridge}",
        )
        self._do(["sysctl", "-w", "net.ipv4.ip_forward=1"], "enable IPv4 forwarding", Policy.TOLERATE)
