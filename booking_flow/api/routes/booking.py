"""
Booking Flow API Endpoints.

Lets the chat widget backend pass each AI reply through the booking
flow and inspect or reset a conversation's flow.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from booking_flow.core.scheduling import (
    BookingFlowController,
    get_booking_flow_controller,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/booking", tags=["Booking"])


class ProcessRequest(BaseModel):
    """One chat turn to pass through the booking flow."""

    conversation_key: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Conversation identifier",
        examples=["conv-550e8400"],
    )
    ai_reply: dict[str, Any] = Field(
        default_factory=dict,
        description="Upstream AI reply, forwarded as-is",
        examples=[{"assistant_message": "Happy to help!", "required_infos": []}],
    )
    last_user_message: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="The user's latest message",
        examples=["Can we schedule a call tomorrow?"],
    )


class ProcessResponse(BaseModel):
    """Reply to render, augmented or untouched."""

    augmented: bool = Field(
        ...,
        description="Whether booking text and payload were injected",
    )
    reply: dict[str, Any] = Field(
        ...,
        description="Augmented reply, or the untouched AI reply",
    )


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


@router.post(
    "/process",
    response_model=ProcessResponse,
    status_code=status.HTTP_200_OK,
    summary="Process a chat turn",
    description="Augment an AI reply with booking text and a booking payload when appropriate.",
    responses={
        200: {"description": "Reply to render"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
async def process_turn(
    request: ProcessRequest,
    controller: BookingFlowController = Depends(get_booking_flow_controller),
) -> ProcessResponse:
    """
    Process one chat turn.

    Falls back to the untouched AI reply if the flow fails unexpectedly,
    so the chat never breaks because of booking.
    """
    try:
        augmented = await controller.process(
            request.ai_reply,
            request.conversation_key,
            request.last_user_message,
        )
    except Exception as e:
        logger.exception(f"Booking flow failed for {request.conversation_key}: {e}")
        augmented = None

    if augmented is None:
        return ProcessResponse(augmented=False, reply=request.ai_reply)
    return ProcessResponse(augmented=True, reply=augmented)


@router.get(
    "/flows/{conversation_key}",
    response_model=dict,
    summary="Get flow state",
    description="Retrieve the current booking flow of a conversation.",
    responses={
        200: {"description": "Flow state"},
        404: {"model": ErrorResponse, "description": "Flow not found"},
    },
)
async def get_flow(
    conversation_key: str,
    controller: BookingFlowController = Depends(get_booking_flow_controller),
) -> dict:
    """Get flow state."""
    flow = controller.get_flow(conversation_key)

    if flow is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Flow not found",
        )

    return {"conversation_key": conversation_key, **flow.to_dict()}


@router.post(
    "/flows/{conversation_key}/dismiss",
    response_model=dict,
    summary="Dismiss a flow",
    description="Close the booking UI without booking (same as declining).",
)
async def dismiss_flow(
    conversation_key: str,
    controller: BookingFlowController = Depends(get_booking_flow_controller),
) -> dict:
    """Dismiss the booking flow."""
    flow = controller.dismiss(conversation_key)
    return {"conversation_key": conversation_key, **flow.to_dict()}


@router.delete(
    "/flows/{conversation_key}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset a flow",
    description="Forget a conversation's booking flow.",
)
async def reset_flow(
    conversation_key: str,
    controller: BookingFlowController = Depends(get_booking_flow_controller),
) -> None:
    """Reset flow to initial state."""
    controller.reset(conversation_key)
