"""
Portflow API Server
JSON bridge between the presentation layer and the aggregation engine.
Every endpoint returns the engine's structured result; failures are carried
in the body (ok=false), not as HTTP errors.
"""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from pydantic import BaseModel

from portflow import __version__
from portflow.agent.engine import PortflowAgent
from portflow.agent.scheduler import RefreshScheduler
from portflow.core.config import Config
from portflow.core.schemas import ActionResult, Outcome
from portflow.utils.logger import Logger

logger = Logger().child("api")


class WorkloadActionSchema(BaseModel):
    id: str


class VisibilitySchema(BaseModel):
    visible: bool


def create_app(
    agent: Optional[PortflowAgent] = None,
    config: Optional[Config] = None,
    auto_refresh: bool = True,
) -> FastAPI:
    """Build the API around one agent and its refresh scheduler."""
    agent = agent or PortflowAgent(config=config)
    scheduler = RefreshScheduler(agent)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if auto_refresh:
            scheduler.start()
        yield
        if auto_refresh:
            await scheduler.stop()

    app = FastAPI(
        title="Portflow",
        version=__version__,
        description="Host network exposure and container inventory",
        lifespan=lifespan,
    )
    app.state.agent = agent
    app.state.scheduler = scheduler

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.get("/api/v1/ports/tcp")
    async def tcp_ports():
        return await agent.list_tcp_sockets()

    @app.get("/api/v1/ports/udp")
    async def udp_ports():
        return await agent.list_udp_sockets()

    @app.get("/api/v1/forwards")
    async def forwards():
        return await agent.list_forwards()

    @app.post("/api/v1/forwards/elevated")
    async def forwards_elevated():
        return await agent.list_forwards_elevated()

    @app.post("/api/v1/processes/{pid}/terminate")
    async def terminate(pid: str):
        logger.info(f"Terminate requested for PID {pid}")
        return await agent.terminate_process(pid)

    @app.post("/api/v1/processes/{pid}/terminate/elevated")
    async def terminate_elevated(pid: str):
        logger.info(f"Elevated terminate requested for PID {pid}")
        return await agent.terminate_process_elevated(pid)

    @app.get("/api/v1/workloads")
    async def workloads():
        return await agent.list_workloads()

    @app.post("/api/v1/workloads/{runtime}/{action}")
    async def workload_action(runtime: str, action: str, data: WorkloadActionSchema):
        handlers = {
            "stop": agent.stop_workload,
            "start": agent.start_workload,
            "remove": agent.remove_workload,
        }
        handler = handlers.get(action)
        if handler is None:
            return ActionResult(ok=False, outcome=Outcome.INVALID, error=f"Unknown action: {action}")
        logger.info(f"Workload {action} requested: {runtime}/{data.id}")
        return await handler(data.id, runtime)

    @app.get("/api/v1/snapshot")
    async def snapshot():
        current = scheduler.snapshot()
        if current is None:
            await scheduler.refresh_now()
            current = scheduler.snapshot()
        return current

    @app.post("/api/v1/visibility")
    async def visibility(data: VisibilitySchema):
        scheduler.set_visible(data.visible)
        return {"status": "ok", "visible": scheduler.visible}

    return app


def main() -> None:
    config = Config()
    app = create_app(config=config)
    uvicorn.run(app, host=config.server_host, port=config.server_port, log_level="info")


if __name__ == "__main__":
    main()
