"""
Chat endpoints.

Two kinds of channel exist. The general channel is a group channel every
user can read; admins can lock it so only they can post. Direct channels
join exactly two users and are addressed as "dm:{a}:{b}" with the ids
sorted, so either side computes the same id. Coach and admin channels
listed for a user are ordinary direct channels.

Clients poll GET /chat/messages/{channelId}; there is no push delivery.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.models import (
    GENERAL_CHANNEL_ID,
    ChannelType,
    ChatChannel,
    ChatMessage,
    Role,
    direct_channel_id,
    direct_channel_participants,
)
from ...core.validation import sanitize_string
from ...infrastructure.kv.repositories.base import format_timestamp
from ...infrastructure.kv.repositories.chat import message_to_document
from ...infrastructure.kv.repositories.users import UserRepository
from ..dependencies import (
    AdminUser,
    AuthContext,
    ChatRepositoryDep,
    CurrentUser,
    SettingsDep,
    UserRepositoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------

class SendMessageRequest(BaseModel):
    """
    A message to post.

    channelId defaults to the general channel. A recipientId without a
    channelId addresses the direct channel with that user.
    """
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    channel_id: Optional[str] = Field(default=None, alias="channelId")
    recipient_id: Optional[str] = Field(default=None, alias="recipientId")


class DirectChannelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def channel_response(channel: ChatChannel, name: Optional[str] = None) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": channel.id,
        "name": name or channel.name,
        "description": channel.description,
        "type": channel.type.value,
        "locked": channel.locked,
    }
    if channel.is_direct:
        document["participants"] = list(channel.participants)
    return document


def _direct_entry(channel_id: str, name: str, description: str) -> dict[str, Any]:
    return {
        "id": channel_id,
        "name": name,
        "description": description,
        "type": ChannelType.DIRECT.value,
        "locked": False,
        "participants": direct_channel_participants(channel_id),
    }


def _check_channel_access(channel_id: str, user: AuthContext) -> None:
    """
    Raise unless the caller may use this channel.

    The general channel is open to everyone. Direct channels are open to
    their two participants, and admins may read any of them.
    """
    if channel_id == GENERAL_CHANNEL_ID:
        return

    participants = direct_channel_participants(channel_id)
    if not participants:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")

    if user.user_id not in participants and not user.is_admin:
        logger.warning(
            "Channel access denied",
            extra={"user_id": user.user_id, "channel_id": channel_id}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized to access this channel",
        )


async def _sender_names(users: UserRepository, sender_ids: set[str]) -> dict[str, str]:
    return {sender_id: await users.display_name(sender_id) for sender_id in sender_ids}


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

@router.get("/channels", summary="Channels visible to the caller")
async def list_channels(
    user: CurrentUser,
    chat: ChatRepositoryDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    """
    The general channel first, then the caller's direct channels.

    Athletes with an assigned coach always see that conversation, and
    admins see one per athlete, whether or not a message was sent yet.
    """
    general = await chat.get_general_channel()
    channels: list[dict[str, Any]] = [channel_response(general)]

    profile = user.profile
    if user.role == Role.ATHLETE and profile and profile.assigned_coach:
        coach = profile.assigned_coach
        channels.append(_direct_entry(
            direct_channel_id(user.user_id, coach.id),
            f"Coach: {coach.name}",
            "Direct messages with your coach",
        ))

    if user.is_admin:
        for athlete in await users.list_by_role(Role.ATHLETE):
            if athlete.id == user.user_id:
                continue
            channels.append(_direct_entry(
                direct_channel_id(user.user_id, athlete.id),
                athlete.full_name,
                f"Direct messages with {athlete.full_name}",
            ))

    for channel in await chat.list_direct_channels_for(user.user_id):
        other_ids = [p for p in channel.participants if p != user.user_id]
        name = await users.display_name(other_ids[0]) if other_ids else channel.name
        channels.append(channel_response(channel, name=name))

    seen: set[str] = set()
    unique = []
    for channel in channels:
        if channel["id"] in seen:
            continue
        seen.add(channel["id"])
        unique.append(channel)

    return {"channels": unique}


@router.post("/dm-channel", summary="Open a direct channel with another user")
async def open_direct_channel(
    request: DirectChannelRequest,
    user: CurrentUser,
    chat: ChatRepositoryDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    if not request.user_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="User ID required")
    if request.user_id == user.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot start a conversation with yourself",
        )

    other = await users.get(request.user_id)
    if other is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="User not found")

    channel = await chat.get_or_create_direct_channel(
        direct_channel_id(user.user_id, other.id),
        name=f"{user.display_name} & {other.full_name}",
        description="Direct messages",
    )
    return {"channel": channel_response(channel, name=other.full_name)}


@router.get("/search-users", summary="Find users to message")
async def search_users(
    user: CurrentUser,
    settings: SettingsDep,
    users: UserRepositoryDep,
    q: str = Query(default=""),
) -> dict[str, Any]:
    query = sanitize_string(q)
    if not query:
        return {"users": []}

    matches = await users.search(
        query, exclude_user_id=user.user_id, limit=settings.user_search_limit
    )
    return {
        "users": [
            {
                "id": p.id,
                "fullName": p.full_name,
                "username": p.username,
                "email": p.email,
                "role": p.role.value,
            }
            for p in matches
        ]
    }


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@router.get("/messages/{channel_id}", summary="Messages in a channel, oldest first")
async def list_messages(
    channel_id: str,
    user: CurrentUser,
    chat: ChatRepositoryDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    _check_channel_access(channel_id, user)

    messages = await chat.list_messages(channel_id)
    names = await _sender_names(users, {m.sender_id for m in messages})

    documents = []
    for message in messages:
        document = message_to_document(message)
        document["senderName"] = names.get(message.sender_id, "Unknown")
        documents.append(document)

    return {"messages": documents}


@router.post("/messages", summary="Post a message")
async def send_message(
    request: SendMessageRequest,
    user: CurrentUser,
    chat: ChatRepositoryDep,
    users: UserRepositoryDep,
) -> dict[str, Any]:
    content = sanitize_string(request.content or "")
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message content required",
        )

    channel_id = request.channel_id
    if not channel_id:
        if request.recipient_id:
            channel_id = direct_channel_id(user.user_id, request.recipient_id)
        else:
            channel_id = GENERAL_CHANNEL_ID

    recipient_id = request.recipient_id
    if channel_id == GENERAL_CHANNEL_ID:
        general = await chat.get_general_channel()
        if general.locked and not user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This channel is locked. Only admins can post messages.",
            )
    else:
        participants = direct_channel_participants(channel_id)
        if not participants:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Channel not found")
        # Posting requires membership, even for admins
        if user.user_id not in participants:
            logger.warning(
                "Message post denied",
                extra={"user_id": user.user_id, "channel_id": channel_id}
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Unauthorized to post in this channel",
            )
        recipient_id = next((p for p in participants if p != user.user_id), user.user_id)
        await chat.get_or_create_direct_channel(channel_id, name="Direct messages")

    message = ChatMessage(
        id=chat.new_message_id(channel_id),
        channel_id=channel_id,
        sender_id=user.user_id,
        content=content,
        recipient_id=recipient_id,
    )
    await chat.add_message(message)

    logger.info(
        "Message sent",
        extra={"user_id": user.user_id, "channel_id": channel_id, "message_id": message.id}
    )

    document = message_to_document(message)
    document["senderName"] = user.display_name
    return {"success": True, "message": document}


# ---------------------------------------------------------------------------
# General Channel Lock
# ---------------------------------------------------------------------------

@router.get("/general/status", summary="Lock state of the general channel")
async def general_status(user: CurrentUser, chat: ChatRepositoryDep) -> dict[str, Any]:
    general = await chat.get_general_channel()
    return {
        "locked": general.locked,
        "lockedBy": general.locked_by,
        "lockedAt": format_timestamp(general.locked_at),
    }


@router.post("/general/lock", summary="Restrict the general channel to admins")
async def lock_general(admin: AdminUser, chat: ChatRepositoryDep) -> dict[str, Any]:
    general = await chat.get_general_channel()
    general.lock(admin.user_id)
    await chat.save_channel(general)

    logger.info("General channel locked", extra={"admin_id": admin.user_id})

    return {"success": True, "locked": True}


@router.post("/general/unlock", summary="Reopen the general channel")
async def unlock_general(admin: AdminUser, chat: ChatRepositoryDep) -> dict[str, Any]:
    general = await chat.get_general_channel()
    general.unlock()
    await chat.save_channel(general)

    logger.info("General channel unlocked", extra={"admin_id": admin.user_id})

    return {"success": True, "locked": False}
