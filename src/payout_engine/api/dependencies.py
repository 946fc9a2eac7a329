"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, Request

from payout_engine.engine import PayoutEngine


def get_engine(request: Request) -> PayoutEngine:
    """Service graph built by create_app()."""
    return request.app.state.engine


# Type alias for cleaner dependency injection
Engine = Annotated[PayoutEngine, Depends(get_engine)]
