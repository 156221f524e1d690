"""Caller identity for the forumwiki API.

Authentication happens upstream (a gateway or reverse proxy). The
resolved identity arrives in two headers: ``X-User-Id`` and an optional
``X-User-Role`` (default ``user``). Use ``get_actor`` as a FastAPI
dependency wherever an operation records or authorizes a user.

Example::

    @router.post("/boards")
    async def create_board(actor: Actor = Depends(get_actor)):
        ...
"""

from __future__ import annotations

from fastapi import Header, HTTPException

from forumwiki.service.forum import Actor

DEFAULT_ROLE = "user"


async def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Resolve the calling user from identity headers.

    Raises:
        HTTPException 401: If ``X-User-Id`` is missing or blank.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    role = (x_user_role or DEFAULT_ROLE).strip().lower() or DEFAULT_ROLE
    return Actor(user_id=x_user_id.strip(), role=role)
