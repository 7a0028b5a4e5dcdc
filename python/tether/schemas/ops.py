"""Typed operation envelope for POST /ops.

Each action is its own model with a Literal `action` tag and a typed
payload; the request body is validated as a discriminated union on that
tag, so an unknown action or a malformed payload is rejected before any
service code runs. Payload fields keep their camelCase wire names.
"""

from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, RootModel

from tether.db.models import MAX_BIGINT_ID

# =============================================================================
# Payloads
# =============================================================================


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class EmptyPayload(_Payload):
    pass


class TouchRequestPayload(_Payload):
    target_username: str = Field(alias="targetUsername", max_length=64)


class TouchRespondPayload(_Payload):
    request_id: int = Field(alias="requestId", gt=0, le=MAX_BIGINT_ID)
    accept: bool = False


class TargetUserPayload(_Payload):
    target_user_id: UUID = Field(alias="targetUserId")


class TouchOrderPayload(_Payload):
    ordered_user_ids: list[UUID] = Field(
        default_factory=list, alias="orderedUserIds", max_length=500
    )


class ChatPayload(_Payload):
    chat_id: UUID = Field(alias="chatId")


class ChatTargetPayload(ChatPayload):
    target_user_id: UUID = Field(alias="targetUserId")


class ChatMemberPayload(ChatPayload):
    member_user_id: UUID = Field(alias="memberUserId")


class ChatMessagesPayload(ChatPayload):
    limit: int | None = None


class ChatSendPayload(ChatPayload):
    content: str = Field(max_length=10000)


class DirectChatOrderPayload(_Payload):
    ordered_chat_ids: list[UUID] = Field(
        default_factory=list, alias="orderedChatIds", max_length=500
    )


# =============================================================================
# Operations
# =============================================================================


class TouchListOp(BaseModel):
    action: Literal["touch.list"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


class TouchRequestOp(BaseModel):
    action: Literal["touch.request"]
    payload: TouchRequestPayload


class TouchRespondOp(BaseModel):
    action: Literal["touch.respond"]
    payload: TouchRespondPayload


class TouchRemoveOp(BaseModel):
    action: Literal["touch.remove"]
    payload: TargetUserPayload


class TouchOrderOp(BaseModel):
    action: Literal["touch.order"]
    payload: TouchOrderPayload = Field(default_factory=TouchOrderPayload)


class HushListOp(BaseModel):
    action: Literal["hush.list"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


class HushCreateWithOp(BaseModel):
    action: Literal["hush.create_with"]
    payload: TargetUserPayload


class HushInviteOp(BaseModel):
    action: Literal["hush.invite"]
    payload: ChatTargetPayload


class HushRequestJoinOp(BaseModel):
    action: Literal["hush.request_join"]
    payload: ChatPayload


class HushAcceptRequestOp(BaseModel):
    action: Literal["hush.accept_request"]
    payload: ChatMemberPayload


class HushDeclineRequestOp(BaseModel):
    action: Literal["hush.decline_request"]
    payload: ChatMemberPayload


class HushAcceptInviteOp(BaseModel):
    action: Literal["hush.accept_invite"]
    payload: ChatPayload


class HushDeclineInviteOp(BaseModel):
    action: Literal["hush.decline_invite"]
    payload: ChatPayload


class HushLeaveOp(BaseModel):
    action: Literal["hush.leave"]
    payload: ChatPayload


class HushRemoveMemberOp(BaseModel):
    action: Literal["hush.remove_member"]
    payload: ChatMemberPayload


class HushMessagesOp(BaseModel):
    action: Literal["hush.messages"]
    payload: ChatMessagesPayload


class HushSendOp(BaseModel):
    action: Literal["hush.send"]
    payload: ChatSendPayload


class DirectListOp(BaseModel):
    action: Literal["dm.list"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


class DirectOpenOp(BaseModel):
    action: Literal["dm.open"]
    payload: TargetUserPayload


class DirectMessagesOp(BaseModel):
    action: Literal["dm.messages"]
    payload: ChatMessagesPayload


class DirectSendOp(BaseModel):
    action: Literal["dm.send"]
    payload: ChatSendPayload


class DirectRemoveOp(BaseModel):
    action: Literal["dm.remove"]
    payload: ChatPayload


class DirectOrderOp(BaseModel):
    action: Literal["dm.order"]
    payload: DirectChatOrderPayload = Field(default_factory=DirectChatOrderPayload)


class ContextSnapshotOp(BaseModel):
    action: Literal["context.snapshot"]
    payload: EmptyPayload = Field(default_factory=EmptyPayload)


Operation = Annotated[
    TouchListOp
    | TouchRequestOp
    | TouchRespondOp
    | TouchRemoveOp
    | TouchOrderOp
    | HushListOp
    | HushCreateWithOp
    | HushInviteOp
    | HushRequestJoinOp
    | HushAcceptRequestOp
    | HushDeclineRequestOp
    | HushAcceptInviteOp
    | HushDeclineInviteOp
    | HushLeaveOp
    | HushRemoveMemberOp
    | HushMessagesOp
    | HushSendOp
    | DirectListOp
    | DirectOpenOp
    | DirectMessagesOp
    | DirectSendOp
    | DirectRemoveOp
    | DirectOrderOp
    | ContextSnapshotOp,
    Field(discriminator="action"),
]


class OperationRequest(RootModel[Operation]):
    """Request body for POST /ops: {"action": ..., "payload": {...}}."""


class OperationResultOut(BaseModel):
    """Response for POST /ops."""

    action: str
    result: Any
