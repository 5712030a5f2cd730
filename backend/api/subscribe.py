"""
Waitlist subscription routes.

- POST   /api/subscribe: {email, source?}
- DELETE /api/subscribe?email=&token=
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from backend.core.ratelimit import client_identity
from backend.features.subscribe.service import SubscribeService


router = APIRouter(prefix="/subscribe", tags=["subscribe"])


class SubscribeResponse(BaseModel):
    success: bool
    message: str


def get_subscribe_service(request: Request) -> SubscribeService:
    state = request.app.state
    return SubscribeService(
        limiter=state.subscribe_limiter,
        store=state.subscriber_store,
        token_secret=state.settings.SUBSCRIBE_TOKEN_SECRET,
    )


@router.post("", response_model=SubscribeResponse)
async def subscribe(request: Request, service: SubscribeService = Depends(get_subscribe_service)):
    raw_body = await request.body()
    return await run_in_threadpool(service.subscribe, client_identity(request), raw_body)


@router.delete("", response_model=SubscribeResponse)
def unsubscribe(
    email: Optional[str] = None,
    token: Optional[str] = None,
    service: SubscribeService = Depends(get_subscribe_service),
):
    return service.unsubscribe(email, token)
