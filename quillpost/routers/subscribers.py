"""Email subscription endpoint."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from quillpost.models.subscriber import SubscribeRequest, SubscribeResponse
from quillpost.services.mailer import NotificationDispatcher, get_dispatcher
from quillpost.services.store import BlogStore, get_store

router = APIRouter(tags=["subscribers"])
logger = logging.getLogger(__name__)


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    submission: SubscribeRequest,
    background_tasks: BackgroundTasks,
    store: BlogStore = Depends(get_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Subscribe an email address. Repeat subscriptions succeed silently.

    New subscribers get a welcome email after the response is sent; a
    delivery failure never reaches the visitor.
    """
    subscriber, created = store.add_subscriber(submission.email)
    if not created:
        return SubscribeResponse(
            status="already_subscribed", message="You're already subscribed."
        )

    logger.info("New subscriber %s", subscriber.email)
    background_tasks.add_task(dispatcher.send_welcome, subscriber.email)
    return SubscribeResponse(status="subscribed", message="Thanks for subscribing!")
