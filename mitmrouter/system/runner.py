import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from mitmrouter.core.errors import (
    CommandFailed,
    CommandTimeout,
    PermissionDenied,
    ResourceBusy,
    ToolNotFound,
)

log = logging.getLogger("mitmrouter.runner")

# Privileged tools usually live in sbin, which is not always on a user's PATH.
_SBIN = ("/usr/local/sbin", "/usr/sbin", "/sbin")

_DENIED_MARKERS = ("operation not permitted", "permission denied")
_BUSY_MARKERS = ("device or resource busy", "file exists", "already exists")


class Outcome(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    TIMEOUT = "timeout"


class Policy(Enum):
    TOLERATE = "tolerate"
    FATAL = "fatal"


@dataclass
class CommandResult:
    cmd: List[str]
    outcome: Outcome
    returncode: Optional[int] = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


@dataclass
class SubprocessRunner:
    """Runs one command at a time, optionally through sudo, with a hard timeout."""

    sudo: bool = False
    timeout: float = 30.0
    extra_path: Sequence[str] = field(default=_SBIN)

    def _search_path(self) -> str:
        parts = [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]
        parts += [p for p in self.extra_path if p not in parts]
        return os.pathsep.join(parts)

    def run(self, cmd: Sequence[str]) -> CommandResult:
        cmd = list(cmd)
        exe = shutil.which(cmd[0], path=self._search_path())
        if exe is None:
            return CommandResult(cmd, Outcome.NOT_FOUND, output=f"{cmd[0]}: command not found")

        argv = ([shutil.which("sudo") or "sudo"] if self.sudo else []) + [exe] + cmd[1:]
        log.debug("+ %s", " ".join(cmd))
        try:
            p = subprocess.run(argv, capture_output=True, text=True, check=False, timeout=self.timeout)
        except FileNotFoundError as exc:
            return CommandResult(cmd, Outcome.NOT_FOUND, output=str(exc))
        except subprocess.TimeoutExpired:
            return CommandResult(cmd, Outcome.TIMEOUT, output=f"timed out after {self.timeout:g}s")
        except OSError as exc:
            return CommandResult(cmd, Outcome.FAILED, output=f"{type(exc).__name__}: {exc}")

        out = (p.stdout or "") + ("\n" + p.stderr if p.stderr else "")
        outcome = Outcome.OK if p.returncode == 0 else Outcome.FAILED
        return CommandResult(cmd, outcome, returncode=p.returncode, output=out.strip())


def sudo_required(mode: str) -> bool:
    if mode == "always":
        return True
    if mode == "never":
        return False
    return os.geteuid() != 0


def classify(result: CommandResult, step: str) -> CommandFailed:
    kwargs = dict(cmd=result.cmd, output=result.output, returncode=result.returncode)
    if result.outcome is Outcome.NOT_FOUND:
        return ToolNotFound(step, **kwargs)
    if result.outcome is Outcome.TIMEOUT:
        return CommandTimeout(step, **kwargs)

    text = result.output.lower()
    if any(m in text for m in _DENIED_MARKERS):
        return PermissionDenied(step, **kwargs)
    if any(m in text for m in _BUSY_MARKERS):
        return ResourceBusy(step, **kwargs)
    return CommandFailed(step, **kwargs)


def run_step(runner, cmd: Sequence[str], policy: Policy, step: str) -> CommandResult:
    """Run ``cmd`` and apply ``policy`` to a failure.

    TOLERATE failures are logged and returned; FATAL failures raise the
    matching CommandFailed subclass.
    """
    result = runner.run(list(cmd))
    if result.ok:
        return result

    if policy is Policy.TOLERATE:
        log.info("   (ignored) %s: %s", step, result.output or result.outcome.value)
        return result

    log.error("%s failed: %s", step, result.output or result.outcome.value)
    raise classify(result, step)
