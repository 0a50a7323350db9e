from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from . import __version__
from .deployment import DeploymentOrchestrator
from .webhook import get_orchestrator, router as webhook_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Redeployment Service", version=__version__)
app.include_router(webhook_router)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.get("/")
async def index():
    return {
        "service": "Redeployment Service",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "webhook": "/github-webhook",
            "health": "/health",
            "repositories": "/repositories",
            "diagnostics": "/repositories/{name}/diagnostics",
        },
    }


@app.get("/health")
def health(orchestrator: DeploymentOrchestrator = Depends(get_orchestrator)):
    try:
        engine = orchestrator.check_docker_availability()
        repositories = orchestrator.repositories_status()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "timestamp": _now(), "error": str(e)},
        )

    return {
        "status": "healthy",
        "timestamp": _now(),
        "docker": engine.model_dump(),
        "repositories": {
            "total": len(repositories),
            "withDockerCompose": sum(1 for r in repositories if r.is_deployable),
        },
    }


@app.get("/repositories")
def repositories(orchestrator: DeploymentOrchestrator = Depends(get_orchestrator)):
    found = orchestrator.repositories_status()
    return {"repositories": [r.model_dump() for r in found], "total": len(found)}


@app.get("/repositories/{name}/diagnostics")
def diagnostics(name: str, orchestrator: DeploymentOrchestrator = Depends(get_orchestrator)):
    found = orchestrator.diagnose_repository(name)
    if found is None:
        raise HTTPException(status_code=404, detail="Repository not found")
    repo, text = found
    return {"repository": repo.name, "path": repo.local_path, "diagnostics": text}
