from messenger.model.user import User
from messenger.model.profile import Profile
from messenger.model.chat_room import ChatRoom
from messenger.model.chat_participant import ChatParticipant
from messenger.model.message import Message

__all__ = ["User", "Profile", "ChatRoom", "ChatParticipant", "Message"]
