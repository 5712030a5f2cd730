"""
Health endpoints. No secrets are exposed, only whether checkout is wired up.
"""
from fastapi import APIRouter, Request


root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz(request: Request):
    """Lightweight liveness check (no deps)."""
    state = request.app.state
    return {
        "status": "ok",
        "env": state.settings.ENV,
        "checkout_enabled": state.session_creator is not None,
    }
