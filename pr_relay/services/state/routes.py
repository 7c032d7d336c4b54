"""Read-only PR state routes."""

from fastapi import APIRouter, Request

from pr_relay.core.exceptions import PRNotFoundError
from pr_relay.core.schemas.responses import ApiResponse
from pr_relay.schemas.pr_state import PRState
from pr_relay.services.state.base import StateStore

router = APIRouter()


def get_store(request: Request) -> StateStore:
    return request.app.state.store


@router.get("/prs", response_model=ApiResponse[list[PRState]])
async def list_prs(request: Request):
    """List every tracked PR."""
    states = await get_store(request).get_all_pr_states()
    states.sort(key=lambda state: state.pr_number)
    return ApiResponse(data=states, message=f"{len(states)} tracked pull requests")


@router.get("/prs/by-message/{message_id}", response_model=ApiResponse[PRState])
async def get_pr_by_message(request: Request, message_id: str):
    """Look up a PR by its chat message id."""
    store = get_store(request)
    pr_number = await store.get_pr_number_by_message_id(message_id)
    state = await store.get_pr_state(pr_number) if pr_number is not None else None
    if state is None:
        raise PRNotFoundError(f"message {message_id}")
    return ApiResponse(data=state)


@router.get("/prs/{pr_number}", response_model=ApiResponse[PRState])
async def get_pr(request: Request, pr_number: int):
    """Get the tracked state of one PR."""
    state = await get_store(request).get_pr_state(pr_number)
    if state is None:
        raise PRNotFoundError(f"#{pr_number}")
    return ApiResponse(data=state)
