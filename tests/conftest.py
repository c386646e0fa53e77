import logging
from typing import Dict, List, Optional, Set

import pytest

from mitmrouter.system.runner import CommandResult, Outcome


class FakeSystem:
    """In-memory stand-in for ip/brctl/iptables/killall and the two daemons."""

    def __init__(self, links=("eth0", "eth1", "wlan0")):
        self.links: Dict[str, bool] = {name: False for name in links}
        self.bridges: Dict[str, Set[str]] = {}
        self.addrs: Dict[str, Set[str]] = {}
        self.filter: List[List[str]] = []
        self.nat: List[List[str]] = []
        self.procs: Set[str] = set()
        self.calls: List[List[str]] = []
        self.fail_on: Dict[tuple, CommandResult] = {}
        self.missing_tools: Set[str] = set()

    # -- helpers for tests ------------------------------------------------
    def fail(self, prefix, output="boom", outcome=Outcome.FAILED, returncode=1):
        self.fail_on[tuple(prefix)] = CommandResult(list(prefix), outcome, returncode, output)

    def snapshot(self):
        return {
            "links": dict(self.links),
            "bridges": {k: set(v) for k, v in self.bridges.items()},
            "addrs": {k: set(v) for k, v in self.addrs.items()},
            "filter": [list(r) for r in self.filter],
            "nat": [list(r) for r in self.nat],
            "procs": set(self.procs),
        }

    # -- runner protocol --------------------------------------------------
    def run(self, cmd):
        cmd = list(cmd)
        self.calls.append(cmd)
        for prefix, res in self.fail_on.items():
            if tuple(cmd[: len(prefix)]) == prefix:
                return CommandResult(cmd, res.outcome, res.returncode, res.output)
        if cmd[0] in self.missing_tools:
            return CommandResult(cmd, Outcome.NOT_FOUND, output=f"{cmd[0]}: command not found")
        handler = getattr(self, "_" + cmd[0], None)
        if handler is None:
            return CommandResult(cmd, Outcome.NOT_FOUND, output=f"{cmd[0]}: command not found")
        err = handler(cmd[1:])
        if err:
            return CommandResult(cmd, Outcome.FAILED, 1, err)
        return CommandResult(cmd, Outcome.OK, 0, "")

    def _del_bridge(self, br):
        self.bridges.pop(br)
        self.links.pop(br, None)
        self.addrs.pop(br, None)

    def _killall(self, args) -> Optional[str]:
        name = args[0]
        if name not in self.procs:
            return f"{name}: no process found"
        self.procs.discard(name)
        return None

    def _ip(self, args) -> Optional[str]:
        if args[:2] == ["link", "set"]:
            dev, what = args[2], args[3:]
            if dev not in self.links:
                return f'Cannot find device "{dev}"'
            if what == ["up"]:
                self.links[dev] = True
            elif what == ["down"]:
                self.links[dev] = False
            elif what[0] == "master":
                if what[1] not in self.bridges:
                    return f'Cannot find device "{what[1]}"'
                self.bridges[what[1]].add(dev)
            return None
        if args[:2] == ["link", "add"]:
            br = args[3]
            if br in self.links:
                return "RTNETLINK answers: File exists"
            self.bridges[br] = set()
            self.links[br] = False
            return None
        if args[:2] == ["link", "del"]:
            if args[2] not in self.bridges:
                return f'Cannot find device "{args[2]}"'
            self._del_bridge(args[2])
            return None
        if args[:2] == ["addr", "add"]:
            addr, dev = args[2], args[4]
            if dev not in self.links:
                return f'Cannot find device "{dev}"'
            if addr in self.addrs.setdefault(dev, set()):
                return "RTNETLINK answers: File exists"
            self.addrs[dev].add(addr)
            return None
        return "unsupported ip command"

    def _brctl(self, args) -> Optional[str]:
        op = args[0]
        if op == "addbr":
            if args[1] in self.links:
                return f"device {args[1]} already exists; can't create bridge with the same name"
            self.bridges[args[1]] = set()
            self.links[args[1]] = False
            return None
        if op == "addif":
            br, dev = args[1], args[2]
            if br not in self.bridges:
                return f"bridge {br} does not exist!"
            if dev not in self.links:
                return f"interface {dev} does not exist!"
            self.bridges[br].add(dev)
            return None
        if op == "delbr":
            br = args[1]
            if br not in self.bridges:
                return f"bridge {br} doesn't exist; can't delete it"
            if self.links.get(br):
                return f"bridge {br} is still up; can't delete it"
            self._del_bridge(br)
            return None
        return "unsupported brctl command"

    def _iptables(self, args) -> Optional[str]:
        table = self.filter
        if args[:2] == ["-t", "nat"]:
            table = self.nat
            args = args[2:]
        if args == ["-F"]:
            table.clear()
        elif args[0] == "-A":
            table.append(args[1:])
        else:
            return "unsupported iptables command"
        return None

    def _sysctl(self, args) -> Optional[str]:
        return None

    def _dnsmasq(self, args) -> Optional[str]:
        if "dnsmasq" in self.procs:
            return "dnsmasq: failed to create listening socket: Address already in use"
        if not any(self.addrs.get(br) for br in self.bridges):
            return "dnsmasq: unknown interface"
        self.procs.add("dnsmasq")
        return None

    def _hostapd(self, args) -> Optional[str]:
        if "hostapd" in self.procs:
            return "ctrl_iface exists and seems to be in use"
        if not any("wlan0" in members for members in self.bridges.values()):
            return "Could not set interface wlan0 bridge"
        self.procs.add("hostapd")
        return None


@pytest.fixture
def fake_system():
    return FakeSystem()


@pytest.fixture
def mitm_env(tmp_path, monkeypatch):
    """Point every MITMROUTER_* path at tmp_path and never use sudo."""
    monkeypatch.setenv("MITMROUTER_CONFIG", str(tmp_path / "etc" / "mitmrouter.conf"))
    monkeypatch.setenv("MITMROUTER_WORKDIR", str(tmp_path / "run"))
    monkeypatch.setenv("MITMROUTER_SUDO", "never")
    for key in ("MITMROUTER_ROLLBACK", "MITMROUTER_REDIRECTS", "MITMROUTER_BRIDGE_TOOL", "MITMROUTER_LOG_FORMAT"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
