"""FastAPI dependencies shared by the route modules."""

from fastapi import Header, Request

from pledge.bets.lifecycle import BetLifecycleService


def get_service(request: Request) -> BetLifecycleService:
    """Lifecycle service created in the app lifespan."""
    return request.app.state.service


def get_owner_id(x_owner_id: str = Header(min_length=1)) -> str:
    """Caller identity, set by the authenticating proxy in ``X-Owner-Id``."""
    return x_owner_id
