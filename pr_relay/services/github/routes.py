"""GitHub webhook routes."""

from fastapi import APIRouter, BackgroundTasks, Request
from pydantic import ValidationError as PydanticValidationError

from pr_relay.coordinator.engine import ReconciliationEngine
from pr_relay.core.exceptions import ValidationError
from pr_relay.core.logging import get_logger
from pr_relay.core.security import require_github_signature
from pr_relay.schemas.events import PREvent
from pr_relay.services.github.parser import parse_webhook_event
from pr_relay.services.github.schemas import PingResponse, WebhookResponse

logger = get_logger("github.routes")

router = APIRouter()


@router.post("/webhook/github", response_model=WebhookResponse | PingResponse)
async def github_webhook(request: Request, background_tasks: BackgroundTasks):
    """Handle GitHub webhook events."""
    event_name = request.headers.get("X-GitHub-Event")
    signature = request.headers.get("X-Hub-Signature-256", "")
    delivery_id = request.headers.get("X-GitHub-Delivery")

    logger.info(f"Webhook received: event={event_name}, delivery={delivery_id}")

    body = await request.body()
    require_github_signature(body, signature)

    payload = await request.json()

    if event_name == "ping":
        return PingResponse(zen=payload.get("zen", ""))

    try:
        event = parse_webhook_event(event_name, payload)
    except PydanticValidationError as e:
        logger.warning(f"Malformed {event_name} payload in delivery {delivery_id}")
        raise ValidationError("Malformed webhook payload", {"errors": [err["msg"] for err in e.errors()]}) from e

    action = payload.get("action")
    if event is None:
        return WebhookResponse(message="Event ignored", event=event_name, action=action)

    engine: ReconciliationEngine = request.app.state.engine
    background_tasks.add_task(process_event, engine, event, delivery_id)

    return WebhookResponse(
        message="Event accepted",
        event=event.kind,
        action=action,
        pr=f"#{event.pr_number}",
    )


async def process_event(engine: ReconciliationEngine, event: PREvent, delivery_id: str | None = None):
    """Run the engine in background."""
    try:
        await engine.handle(event)
    except Exception as e:
        logger.error(f"Failed to process {event.kind} for PR #{event.pr_number} (delivery={delivery_id}): {e}")
