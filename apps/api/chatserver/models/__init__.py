"""Expose ORM models."""
from .direct_message import DMConversation, DMMessage
from .friend_request import FriendRequest, FriendRequestStatus
from .message import Message
from .server import Channel, ChannelKind, Server, server_members
from .user import User, UserStatus, friendships

__all__ = [
    "Channel",
    "ChannelKind",
    "DMConversation",
    "DMMessage",
    "FriendRequest",
    "FriendRequestStatus",
    "Message",
    "Server",
    "User",
    "UserStatus",
    "friendships",
    "server_members",
]
