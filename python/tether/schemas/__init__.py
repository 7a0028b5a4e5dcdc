"""Pydantic schemas for request/response models.

Commonly used schemas are re-exported here for convenient imports.
"""

from tether.schemas.common import ActorOut, ProfileOut
from tether.schemas.direct_chats import DirectChatOut, DirectMessageOut
from tether.schemas.hush import HushChatOut, HushListOut, HushMessageOut
from tether.schemas.ops import Operation, OperationRequest, OperationResultOut
from tether.schemas.snapshot import SnapshotOut
from tether.schemas.touch import TouchContactOut, TouchListOut

__all__ = [
    "ActorOut",
    "ProfileOut",
    "DirectChatOut",
    "DirectMessageOut",
    "HushChatOut",
    "HushListOut",
    "HushMessageOut",
    "Operation",
    "OperationRequest",
    "OperationResultOut",
    "SnapshotOut",
    "TouchContactOut",
    "TouchListOut",
]
