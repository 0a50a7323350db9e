from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from .config import settings
from .deployment import DeploymentOrchestrator
from .models import PushNotification
from .signature import SignatureVerifier

logger = logging.getLogger(__name__)

router = APIRouter()


def get_verifier() -> SignatureVerifier:
    return SignatureVerifier(settings.github_webhook_secret)


def get_orchestrator() -> DeploymentOrchestrator:
    return DeploymentOrchestrator.from_settings(settings)


@router.post("/github-webhook")
async def github_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None, alias="X-Hub-Signature-256"),
    x_github_event: Optional[str] = Header(None, alias="X-GitHub-Event"),
    verifier: SignatureVerifier = Depends(get_verifier),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    # Signature covers the body exactly as GitHub sent it
    raw_body = await request.body()
    if not verifier.verify(raw_body, x_hub_signature_256):
        logger.error("Invalid webhook signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    if x_github_event != "push":
        logger.info(f"Ignoring event type: {x_github_event}")
        return {"message": "Event ignored", "event": x_github_event}

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    try:
        push = PushNotification.from_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(f"Received push event for {push.source_repo_name} on {push.ref}")
    logger.info(f"Commit: {push.commit_id} by {push.pusher_identity}")
    if push.commit_message:
        logger.info(f"Message: {push.commit_message}")

    # git and docker calls block; keep them off the event loop
    results = await run_in_threadpool(orchestrator.process_push, push)

    for result in results:
        if result.success:
            logger.info(f"Successfully deployed {result.repository}:{result.branch}")
        else:
            logger.error(f"Failed to deploy {result.repository}:{result.branch} - {result.message}")

    return {
        "message": "Webhook processed successfully",
        "deployments": len(results),
        "results": [result.model_dump(mode="json") for result in results],
    }
