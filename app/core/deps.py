# app/core/deps.py
from fastapi import HTTPException, Request, status

from app.services.order_index import LiveOrderIndex
from app.services.transition_engine import StatusTransitionEngine


def get_order_index(request: Request) -> LiveOrderIndex:
    """
    FastAPI dependency returning the live order index owned by the app.

    The index is created in the application lifespan and stored on
    `app.state.order_index`.
    """
    index = getattr(request.app.state, "order_index", None)
    if index is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order feed not initialized",
        )
    return index


def get_transition_engine(request: Request) -> StatusTransitionEngine:
    engine = getattr(request.app.state, "transition_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Status updates not available",
        )
    return engine
