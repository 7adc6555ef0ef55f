from app.models.connected_account import ConnectedAccount
from app.models.message import Message
from app.models.thread import Thread, ThreadParticipant
from app.models.vector_chunk import VectorChunk

__all__ = [
    "ConnectedAccount",
    "Message",
    "Thread",
    "ThreadParticipant",
    "VectorChunk",
]
