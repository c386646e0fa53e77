from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from mitmrouter.core.config import dump_yaml, load_config
from mitmrouter.core.errors import ConfigInvalid, MitmRouterError, PermissionDenied, ResourceBusy
from mitmrouter.core.settings import RuntimeSettings
from mitmrouter.core.status import status_snapshot
from mitmrouter.system.lifecycle import Lifecycle
from mitmrouter.system.runner import SubprocessRunner, sudo_required

app = FastAPI(title="mitmrouter")

# Swapped out by tests; None means a SubprocessRunner built from settings.
runner = None


def _runner(settings: RuntimeSettings):
    if runner is not None:
        return runner
    return SubprocessRunner(sudo=sudo_required(settings.sudo), timeout=settings.command_timeout)


def _http_status(e: MitmRouterError) -> int:
    if isinstance(e, ConfigInvalid):
        return 422
    if isinstance(e, PermissionDenied):
        return 403
    if isinstance(e, ResourceBusy):
        return 409
    return 500


def _fail(e: MitmRouterError) -> HTTPException:
    return HTTPException(
        status_code=_http_status(e),
        detail={"error": type(e).__name__, "message": str(e), "exit_code": e.exit_code},
    )


def _lifecycle() -> Lifecycle:
    settings = RuntimeSettings.from_env()
    cfg = load_config(settings.config_path)
    return Lifecycle.from_settings(cfg, settings, runner=_runner(settings))


@app.get("/")
def status():
    try:
        settings = RuntimeSettings.from_env()
        cfg = load_config(settings.config_path)
    except MitmRouterError as e:
        raise _fail(e)
    return {"config": cfg.model_dump(), "status": status_snapshot(cfg, _runner(settings))}


@app.get("/api/config.yaml", response_class=PlainTextResponse)
def get_config_yaml():
    try:
        cfg = load_config(RuntimeSettings.from_env().config_path)
    except MitmRouterError as e:
        raise _fail(e)
    return dump_yaml(cfg)


@app.post("/actions/up")
def action_up():
    try:
        state = _lifecycle().up()
    except MitmRouterError as e:
        raise _fail(e)
    return {"state": state.value}


@app.post("/actions/down")
def action_down():
    try:
        state = _lifecycle().down()
    except MitmRouterError as e:
        raise _fail(e)
    return {"state": state.value}
