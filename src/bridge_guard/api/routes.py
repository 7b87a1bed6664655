"""Gateway utility endpoints.

Exposes a health check and proof-of-work challenge issuance. Challenge
issuance is rate limited per client address.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from bridge_guard.api.dependencies import Guards
from bridge_guard.schemas.pow import PowChallengeOut


def build_router(guards: Guards) -> APIRouter:
    """Return the router for the utility endpoints."""
    router = APIRouter()

    @router.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @router.post(
        "/challenges",
        response_model=PowChallengeOut,
        status_code=201,
        dependencies=[Depends(guards.rate_limit())],
    )
    async def create_challenge() -> PowChallengeOut:
        """Issue a proof-of-work challenge for a client to solve."""
        challenge, target = await guards.pow.get_challenge()
        return PowChallengeOut(challenge=challenge, target=target)

    return router
