from __future__ import annotations

from fastapi import Request

from ..services.changes import ChangeFeed


def get_change_feed(request: Request) -> ChangeFeed:
    """Hand routers the feed that was built once in the application factory."""

    return request.app.state.change_feed
