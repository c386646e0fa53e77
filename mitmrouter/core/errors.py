from typing import Optional


class MitmRouterError(Exception):
    exit_code = 2


class ConfigError(MitmRouterError):
    """The settings file could not be read, parsed or written."""

    exit_code = 3


class ConfigInvalid(ConfigError):
    pass


class CommandFailed(MitmRouterError):
    """A fatal step's external command did not succeed."""

    exit_code = 2

    def __init__(self, step: str, cmd: Optional[list] = None, output: str = "", returncode: Optional[int] = None):
        self.step = step
        self.cmd = list(cmd or [])
        self.output = output
        self.returncode = returncode
        detail = f"{step} failed"
        if returncode is not None:
            detail += f" (exit {returncode})"
        if output:
            detail += f": {output}"
        super().__init__(detail)


class ToolNotFound(CommandFailed):
    exit_code = 4


class PermissionDenied(CommandFailed):
    exit_code = 5


class ResourceBusy(CommandFailed):
    exit_code = 6


class CommandTimeout(CommandFailed):
    exit_code = 7


class DaemonStartFailed(CommandFailed):
    exit_code = 8

    def __init__(self, step: str, cause: Optional[CommandFailed] = None, **kwargs):
        self.cause = cause
        if cause is not None:
            kwargs.setdefault("cmd", cause.cmd)
            kwargs.setdefault("output", cause.output)
            kwargs.setdefault("returncode", cause.returncode)
        super().__init__(step, **kwargs)
