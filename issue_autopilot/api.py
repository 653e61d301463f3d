"""
FastAPI application: health, status and the GitHub webhook.
"""

from __future__ import annotations

import hashlib
import hmac
import importlib.metadata
import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import ensure_required, get_settings
from .runtime import Runtime, build_runtime
from .schemas.work_item import WorkItem

logger = structlog.get_logger()

WEBHOOK_ACTIONS = {"opened", "edited", "reopened"}


def _version() -> str:
    try:
        return importlib.metadata.version("issue-autopilot")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check a GitHub ``X-Hub-Signature-256`` header against ``body``."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


def create_app(runtime: Optional[Runtime] = None) -> FastAPI:
    """Create the application.

    Args:
        runtime: Prebuilt runtime; when omitted one is built from settings
            at startup (and required credentials are checked).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        rt = runtime
        owned = rt is None
        if rt is None:
            settings = get_settings()
            ensure_required(settings)
            rt = build_runtime(settings)
        app.state.runtime = rt

        logger.info(
            "api_starting",
            repo=rt.settings.repo_full_name,
            polling=rt.settings.enable_polling,
            dry_run=rt.settings.dry_run,
        )
        rt.state.set_status("running")
        if rt.settings.enable_polling:
            rt.loop.run_in_thread()

        yield

        logger.info("api_stopping")
        rt.loop.stop()
        if owned:
            rt.close()

    app = FastAPI(
        title="Issue Autopilot",
        description="Turns repository issues into applied file changes",
        version=_version(),
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def current(request: Request) -> Runtime:
        rt = getattr(request.app.state, "runtime", None)
        if rt is None:
            raise HTTPException(status_code=503, detail="Runtime not initialized")
        return rt

    @app.get("/health", tags=["system"])
    def health(request: Request) -> Dict[str, Any]:
        """Liveness plus the headline counters."""
        rt = current(request)
        snap = rt.state.snapshot(limit=0)
        return {
            "status": snap["status"],
            "uptime": snap["uptime_seconds"],
            "last_run": snap["last_run"],
            "stats": snap["stats"],
            "online": snap["online"],
            "dry_run": rt.settings.dry_run,
        }

    @app.get("/meta", tags=["system"])
    def meta(request: Request) -> Dict[str, Any]:
        rt = current(request)
        return {
            "owner": rt.settings.repo_owner,
            "repo": rt.settings.repo_name,
            "branch": rt.settings.branch,
            "model": rt.reasoning.model,
            "online": rt.state.online,
            "version": _version(),
        }

    @app.get("/status", tags=["system"])
    def status(request: Request, limit: int = 50) -> Dict[str, Any]:
        """Run state including recent progress events."""
        return current(request).state.snapshot(limit=limit)

    @app.post("/webhook", tags=["webhook"], status_code=202)
    async def webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_github_event: Optional[str] = Header(default=None),
        x_hub_signature_256: Optional[str] = Header(default=None),
    ) -> Dict[str, Any]:
        """Schedule processing for opened, edited or reopened issues."""
        rt = current(request)
        body = await request.body()

        secret = rt.settings.webhook_secret
        if secret and not verify_signature(secret, body, x_hub_signature_256):
            logger.warning("webhook_signature_invalid", github_event=x_github_event)
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body or b"{}")
        except ValueError:
            raise HTTPException(status_code=400, detail="Body is not valid JSON")

        action = payload.get("action") if isinstance(payload, dict) else None
        issue = payload.get("issue") if isinstance(payload, dict) else None
        if x_github_event != "issues" or action not in WEBHOOK_ACTIONS or not issue:
            logger.debug("webhook_ignored", github_event=x_github_event, action=action)
            return {"accepted": False, "event": x_github_event, "action": action}

        item = WorkItem.from_github(issue)
        logger.info("webhook_accepted", number=item.number, action=action)
        background_tasks.add_task(rt.pipeline.process_work_item, item)
        return {"accepted": True, "issue": item.number}

    return app
