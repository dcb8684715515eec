from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI

    from leaveflow.config import Settings

# Development header auth; see ``leaveflow.api.deps.get_actor_context``.
ACTOR_HEADERS = ("X-Company-Id", "X-User-Id", "X-Role")


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Allow browser clients on the configured origins to send actor headers."""
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", *ACTOR_HEADERS],
    )
