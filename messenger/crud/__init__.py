from messenger.crud.user_crud import user_crud
from messenger.crud.profile_crud import profile_crud
from messenger.crud.chat_room_crud import chat_room_crud
from messenger.crud.chat_participant_crud import chat_participant_crud
from messenger.crud.message_crud import message_crud

__all__ = [
    "user_crud",
    "profile_crud",
    "chat_room_crud",
    "chat_participant_crud",
    "message_crud",
]
