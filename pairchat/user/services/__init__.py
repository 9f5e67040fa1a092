from .core import (
    dump_chat as _dump_chat,
    get_user_by_id as _get_user_by_id,
    initialize_user as _initialize_user,
    move_chat_to_tab as _move_chat_to_tab,
)
from .friendship import (
    accept_friend_request as _accept_friend_request,
    delete_friend_request as _delete_friend_request,
    get_friendship_status as _get_friendship_status,
    get_incoming_requests as _get_incoming_requests,
    reject_friend_request as _reject_friend_request,
    send_friend_request as _send_friend_request,
    unfriend as _unfriend,
)
from .identity import (
    normalize_username as _normalize_username,
    rename_username as _rename_username,
)


class UserService:
    """Service class for user-related operations and Firestore interaction."""

    get_user_by_id = staticmethod(_get_user_by_id)
    initialize_user = staticmethod(_initialize_user)
    move_chat_to_tab = staticmethod(_move_chat_to_tab)
    dump_chat = staticmethod(_dump_chat)
    normalize_username = staticmethod(_normalize_username)
    rename_username = staticmethod(_rename_username)
    send_friend_request = staticmethod(_send_friend_request)
    accept_friend_request = staticmethod(_accept_friend_request)
    reject_friend_request = staticmethod(_reject_friend_request)
    delete_friend_request = staticmethod(_delete_friend_request)
    unfriend = staticmethod(_unfriend)
    get_friendship_status = staticmethod(_get_friendship_status)
    get_incoming_requests = staticmethod(_get_incoming_requests)
