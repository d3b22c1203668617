"""
Repository for chat channels and messages.

Channels live at "channel:{channelId}": the general channel at
"channel:general" (it only exists once someone locks it) and direct
channels at "channel:dm:{a}:{b}". Messages live at
"message:{channelId}:{ms}-{rand}", so reading a channel is one prefix scan.
"""

import logging
from typing import Any, Optional

from afsp.core.models import (
    GENERAL_CHANNEL_ID,
    ChannelType,
    ChatChannel,
    ChatMessage,
    direct_channel_participants,
)
from afsp.infrastructure.kv.client import new_record_suffix

from .base import Repository, format_timestamp, parse_enum, parse_timestamp, sort_key

logger = logging.getLogger(__name__)


CHANNEL_PREFIX = "channel:"
DIRECT_CHANNEL_PREFIX = "channel:dm:"
MESSAGE_PREFIX = "message:"


def default_general_channel() -> ChatChannel:
    return ChatChannel(
        id=GENERAL_CHANNEL_ID,
        type=ChannelType.GROUP,
        name="General",
        description="General discussion for all athletes",
    )


def channel_to_document(channel: ChatChannel) -> dict[str, Any]:
    return {
        "id": channel.id,
        "type": channel.type.value,
        "name": channel.name,
        "description": channel.description,
        "participants": list(channel.participants),
        "locked": channel.locked,
        "lockedBy": channel.locked_by,
        "lockedAt": format_timestamp(channel.locked_at),
    }


def channel_from_document(document: dict[str, Any]) -> ChatChannel:
    return ChatChannel(
        id=document["id"],
        type=parse_enum(ChannelType, document.get("type"), ChannelType.GROUP),
        name=document.get("name", ""),
        description=document.get("description", ""),
        participants=list(document.get("participants") or []),
        locked=bool(document.get("locked", False)),
        locked_by=document.get("lockedBy"),
        locked_at=parse_timestamp(document.get("lockedAt")),
    )


def message_to_document(message: ChatMessage) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": message.id,
        "channelId": message.channel_id,
        "senderId": message.sender_id,
        "recipientId": message.recipient_id,
        "content": message.content,
        "createdAt": format_timestamp(message.created_at),
        "read": message.read,
    }
    if message.sender_name is not None:
        document["senderName"] = message.sender_name
    return document


def message_from_document(document: dict[str, Any]) -> ChatMessage:
    message = ChatMessage(
        id=document["id"],
        channel_id=document.get("channelId", GENERAL_CHANNEL_ID),
        sender_id=document.get("senderId", ""),
        content=document.get("content", ""),
        recipient_id=document.get("recipientId"),
        read=bool(document.get("read", False)),
    )
    message.created_at = parse_timestamp(document.get("createdAt")) or message.created_at
    return message


class ChatRepository(Repository):

    async def get_channel(self, channel_id: str) -> Optional[ChatChannel]:
        document = await self._store.get(f"{CHANNEL_PREFIX}{channel_id}")
        if document is None:
            return None
        return channel_from_document(document)

    async def get_general_channel(self) -> ChatChannel:
        return await self.get_channel(GENERAL_CHANNEL_ID) or default_general_channel()

    async def save_channel(self, channel: ChatChannel) -> None:
        await self._store.set(f"{CHANNEL_PREFIX}{channel.id}", channel_to_document(channel))

    async def get_or_create_direct_channel(
        self,
        channel_id: str,
        name: str,
        description: str = "",
    ) -> ChatChannel:
        """
        Direct channel by id, created on first use.

        Participants come from the id itself, so two users opening a
        conversation with each other land on the same channel.
        """
        existing = await self.get_channel(channel_id)
        if existing is not None:
            return existing

        channel = ChatChannel(
            id=channel_id,
            type=ChannelType.DIRECT,
            name=name,
            description=description,
            participants=direct_channel_participants(channel_id),
        )
        await self.save_channel(channel)
        logger.info("Created direct channel", extra={"channel_id": channel_id})
        return channel

    async def list_direct_channels_for(self, user_id: str) -> list[ChatChannel]:
        documents = await self._store.get_by_prefix(DIRECT_CHANNEL_PREFIX)
        channels = [channel_from_document(d) for d in documents if d.get("id")]
        return [c for c in channels if c.has_participant(user_id)]

    async def add_message(self, message: ChatMessage) -> None:
        await self._store.set(message.id, message_to_document(message))

    @staticmethod
    def new_message_id(channel_id: str) -> str:
        return f"{MESSAGE_PREFIX}{channel_id}:{new_record_suffix()}"

    async def list_messages(self, channel_id: str) -> list[ChatMessage]:
        """A channel's messages, oldest first."""
        documents = await self._store.get_by_prefix(f"{MESSAGE_PREFIX}{channel_id}:")
        messages = [message_from_document(d) for d in documents if d.get("id")]
        messages.sort(key=lambda m: sort_key(m.created_at))
        return messages
