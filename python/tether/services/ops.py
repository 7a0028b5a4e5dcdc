"""Operation dispatcher.

Routes each validated operation model to exactly one service call. The
handler table is keyed by operation type and covers every member of the
Operation union; a test enforces that nothing is left unmapped.

Store failures are logged with the action, actor and payload ids and
surfaced as E_INTERNAL. Typed ApiErrors pass through untouched.
"""

from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tether.errors import ApiError, ApiErrorCode
from tether.logging import get_logger, set_action
from tether.schemas import ops as op_schemas
from tether.schemas.common import ActorOut
from tether.schemas.ops import OperationResultOut
from tether.services import direct_chats, hush, snapshot, touch

logger = get_logger(__name__)

Handler = Callable[[Session, ActorOut, Any], Any]


_HANDLERS: dict[type, Handler] = {
    # touch
    op_schemas.TouchListOp: lambda db, actor, op: touch.list_touch(db, actor.user_id),
    op_schemas.TouchRequestOp: lambda db, actor, op: touch.request_touch(
        db, actor.user_id, op.payload.target_username
    ),
    op_schemas.TouchRespondOp: lambda db, actor, op: touch.respond_touch(
        db, actor.user_id, op.payload.request_id, op.payload.accept
    ),
    op_schemas.TouchRemoveOp: lambda db, actor, op: touch.remove_touch(
        db, actor.user_id, op.payload.target_user_id
    ),
    op_schemas.TouchOrderOp: lambda db, actor, op: touch.set_touch_order(
        db, actor.user_id, op.payload.ordered_user_ids
    ),
    # hush
    op_schemas.HushListOp: lambda db, actor, op: hush.list_hush(db, actor.user_id),
    op_schemas.HushCreateWithOp: lambda db, actor, op: hush.create_hush_with(
        db, actor.user_id, op.payload.target_user_id
    ),
    op_schemas.HushInviteOp: lambda db, actor, op: hush.invite_to_hush(
        db, actor.user_id, op.payload.chat_id, op.payload.target_user_id
    ),
    op_schemas.HushRequestJoinOp: lambda db, actor, op: hush.request_join_hush(
        db, actor.user_id, op.payload.chat_id
    ),
    op_schemas.HushAcceptRequestOp: lambda db, actor, op: hush.resolve_join_request(
        db, actor.user_id, op.payload.chat_id, op.payload.member_user_id, True
    ),
    op_schemas.HushDeclineRequestOp: lambda db, actor, op: hush.resolve_join_request(
        db, actor.user_id, op.payload.chat_id, op.payload.member_user_id, False
    ),
    op_schemas.HushAcceptInviteOp: lambda db, actor, op: hush.respond_hush_invite(
        db, actor.user_id, op.payload.chat_id, True
    ),
    op_schemas.HushDeclineInviteOp: lambda db, actor, op: hush.respond_hush_invite(
        db, actor.user_id, op.payload.chat_id, False
    ),
    op_schemas.HushLeaveOp: lambda db, actor, op: hush.leave_hush(
        db, actor.user_id, op.payload.chat_id
    ),
    op_schemas.HushRemoveMemberOp: lambda db, actor, op: hush.remove_hush_member(
        db, actor.user_id, op.payload.chat_id, op.payload.member_user_id
    ),
    op_schemas.HushMessagesOp: lambda db, actor, op: hush.list_hush_messages(
        db, actor.user_id, op.payload.chat_id, op.payload.limit
    ),
    op_schemas.HushSendOp: lambda db, actor, op: hush.send_hush_message(
        db, actor.user_id, op.payload.chat_id, op.payload.content
    ),
    # direct chats
    op_schemas.DirectListOp: lambda db, actor, op: direct_chats.list_direct_chats(
        db, actor.user_id
    ),
    op_schemas.DirectOpenOp: lambda db, actor, op: direct_chats.open_direct_chat(
        db, actor.user_id, op.payload.target_user_id
    ),
    op_schemas.DirectMessagesOp: lambda db, actor, op: direct_chats.list_direct_messages(
        db, actor.user_id, op.payload.chat_id, op.payload.limit
    ),
    op_schemas.DirectSendOp: lambda db, actor, op: direct_chats.send_direct_message(
        db, actor.user_id, op.payload.chat_id, op.payload.content
    ),
    op_schemas.DirectRemoveOp: lambda db, actor, op: direct_chats.remove_direct_chat(
        db, actor.user_id, op.payload.chat_id
    ),
    op_schemas.DirectOrderOp: lambda db, actor, op: direct_chats.set_direct_chat_order(
        db, actor.user_id, op.payload.ordered_chat_ids
    ),
    # context
    op_schemas.ContextSnapshotOp: lambda db, actor, op: snapshot.build_snapshot(db, actor),
}


def _payload_for_log(op: Any) -> dict:
    # Message bodies stay out of logs; ids and flags are enough to reproduce.
    return op.payload.model_dump(mode="json", exclude={"content"})


def dispatch(db: Session, actor: ActorOut, op: Any) -> OperationResultOut:
    """Run one operation for the actor.

    Args:
        db: Database session.
        actor: The authenticated caller.
        op: A validated member of the Operation union.

    Returns:
        OperationResultOut echoing the action with the service result.

    Raises:
        ApiError: Whatever the service raised, or E_INTERNAL on store failure.
    """
    handler = _HANDLERS.get(type(op))
    if handler is None:
        raise ApiError(ApiErrorCode.E_INVALID_REQUEST, f"Unsupported action: {op.action}")

    set_action(op.action)
    try:
        result = handler(db, actor, op)
    except SQLAlchemyError as exc:
        logger.exception(
            "operation_store_failure",
            action=op.action,
            actor_id=str(actor.user_id),
            payload=_payload_for_log(op),
        )
        raise ApiError(ApiErrorCode.E_INTERNAL, "Internal server error") from exc

    return OperationResultOut(action=op.action, result=result)
