import hashlib
import hmac

import structlog
from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request, status

from app.config import settings
from app.schemas.events import InboundEvent
from app.services import bypass_processor

logger = structlog.get_logger(__name__)

webhooks_router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={digest}", signature)


@webhooks_router.post(
    "/github",
    status_code=status.HTTP_202_ACCEPTED,
)
async def receive_github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_github_delivery: str | None = Header(None, description="GitHub delivery GUID"),
    x_github_event: str | None = Header(None, description="GitHub event name"),
    x_hub_signature_256: str | None = Header(
        None, description="GitHub webhook signature"
    ),
):
    if not x_github_delivery:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Delivery header.",
        )

    if not x_github_event:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-GitHub-Event header.",
        )

    body = await request.body()

    if settings.github_webhook_secret:
        if not x_hub_signature_256:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing X-Hub-Signature-256 header.",
            )

        if not verify_signature(
            body, settings.github_webhook_secret, x_hub_signature_256
        ):
            logger.warning(
                "Rejected webhook with invalid signature",
                delivery_id=x_github_delivery,
                event=x_github_event,
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid signature.",
            )

    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload."
        )

    if x_github_event == "ping":
        return {"message": "pong", "event_id": x_github_delivery}

    event = InboundEvent.from_github(x_github_event, x_github_delivery, payload)

    # Acknowledge before processing so GitHub does not time out and redeliver
    background_tasks.add_task(bypass_processor.handle_event, event)

    logger.info(
        "Accepted GitHub webhook",
        delivery_id=x_github_delivery,
        event=x_github_event,
        action=event.action,
    )
    return {"message": "Webhook received", "event_id": x_github_delivery}
