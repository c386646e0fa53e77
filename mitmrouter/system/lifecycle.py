import logging
import threading
from enum import Enum

from mitmrouter.core.models import ApplianceConfig, NetworkTopology
from mitmrouter.core.settings import RuntimeSettings
from mitmrouter.system.resources import ResourceController
from mitmrouter.system.runner import SubprocessRunner, sudo_required
from mitmrouter.system.services import ServiceSupervisor

log = logging.getLogger("mitmrouter.lifecycle")

# up/down touch the same bridge and rule set; one at a time per process.
_OP_LOCK = threading.Lock()


class State(Enum):
    UNKNOWN = "unknown"
    DOWN = "down"
    UP = "up"


class Lifecycle:
    def __init__(
        self,
        cfg: ApplianceConfig,
        resources: ResourceController,
        services: ServiceSupervisor,
        rollback: bool = True,
    ):
        self.cfg = cfg
        self.resources = resources
        self.services = services
        self.rollback = rollback
        self.state = State.UNKNOWN

    @classmethod
    def from_settings(cls, cfg: ApplianceConfig, settings: RuntimeSettings, runner=None) -> "Lifecycle":
        if runner is None:
            runner = SubprocessRunner(sudo=sudo_required(settings.sudo), timeout=settings.command_timeout)
        return cls(
            cfg,
            ResourceController(runner, bridge_tool=settings.bridge_tool, redirects=settings.redirects),
            ServiceSupervisor(runner, settings.dnsmasq_conf, settings.hostapd_conf),
            rollback=settings.rollback,
        )

    def _down(self) -> None:
        self.resources.reset_all(NetworkTopology.from_config(self.cfg))
        self.services.mark_stopped()
        self.state = State.DOWN

    def down(self) -> State:
        with _OP_LOCK:
            self._down()
        return self.state

    def up(self) -> State:
        with _OP_LOCK:
            topo = NetworkTopology.from_config(self.cfg)
            self._down()
            try:
                dhcp_conf, ap_conf = self.services.write_service_configs(self.cfg)
                self.resources.establish(topo)
                self.services.start_dhcp_service(dhcp_conf)
                self.services.start_ap_service(ap_conf)
            except Exception as e:
                if self.rollback:
                    log.error("== up failed (%s), rolling back", e)
                    self._down()
                else:
                    self.state = State.UNKNOWN
                raise
            self.state = State.UP
            log.info("== Router is up on %s (%s)", topo.bridge, topo.address)
        return self.state

