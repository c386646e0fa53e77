import logging
import os
from dataclasses import dataclass
from typing import Dict, Tuple

from mitmrouter.core.errors import CommandFailed, ConfigError, DaemonStartFailed
from mitmrouter.core.models import ApplianceConfig
from mitmrouter.system.render import render_dnsmasq, render_hostapd
from mitmrouter.system.runner import Policy, run_step

log = logging.getLogger("mitmrouter.services")

DNSMASQ = "dnsmasq"
HOSTAPD = "hostapd"


@dataclass
class ServiceDescriptor:
    name: str
    config_path: str
    config_text: str
    running: bool = False


def _write(path: str, content: str) -> None:
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise ConfigError(f"cannot write {path}: {e}") from e


class ServiceSupervisor:
    def __init__(self, runner, dnsmasq_conf: str, hostapd_conf: str):
        self.runner = runner
        self.dnsmasq_conf = dnsmasq_conf
        self.hostapd_conf = hostapd_conf
        self.services: Dict[str, ServiceDescriptor] = {}

    def write_service_configs(self, cfg: ApplianceConfig) -> Tuple[str, str]:
        # Regenerated from scratch each cycle; previous descriptors are dropped.
        self.services = {}

        log.info("== Creating dnsmasq configuration file")
        dhcp = ServiceDescriptor(DNSMASQ, self.dnsmasq_conf, render_dnsmasq(cfg))
        _write(dhcp.config_path, dhcp.config_text)

        log.info("== Creating hostapd configuration file")
        ap = ServiceDescriptor(HOSTAPD, self.hostapd_conf, render_hostapd(cfg))
        _write(ap.config_path, ap.config_text)

        self.services = {DNSMASQ: dhcp, HOSTAPD: ap}
        return dhcp.config_path, ap.config_path

    def _start(self, name: str, cmd: list, path: str) -> None:
        log.info("== Starting %s", name)
        try:
            run_step(self.runner, cmd, Policy.FATAL, f"start {name}")
        except CommandFailed as e:
            raise DaemonStartFailed(f"start {name}", cause=e) from e

        svc = self.services.get(name)
        if svc is None or svc.config_path != path:
            svc = self.services[name] = ServiceDescriptor(name, path, "")
        svc.running = True

    def start_dhcp_service(self, path: str) -> None:
        self._start(DNSMASQ, [DNSMASQ, "-C", path], path)

    def start_ap_service(self, path: str) -> None:
        # -B: detach once the radio is configured so the caller gets an exit status
        self._start(HOSTAPD, [HOSTAPD, "-B", path], path)

    def mark_stopped(self) -> None:
        for svc in self.services.values():
            svc.running = False
