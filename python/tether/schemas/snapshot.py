"""Context snapshot schema."""

from pydantic import BaseModel

from tether.schemas.common import ActorOut
from tether.schemas.direct_chats import DirectChatOut
from tether.schemas.hush import HushListOut
from tether.schemas.touch import TouchListOut


class SnapshotOut(BaseModel):
    """Everything a client needs to render the viewer's relationships in one read."""

    actor: ActorOut
    touch: TouchListOut
    chats: list[DirectChatOut]
    hush: HushListOut
