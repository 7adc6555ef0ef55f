from app.services.account_service import AccountService
from app.services.event_publisher import EventPublisher
from app.services.message_service import MessageService
from app.services.thread_service import ThreadService
from app.services.vector_index_service import SqlVectorIndex

__all__ = [
    "AccountService",
    "EventPublisher",
    "MessageService",
    "SqlVectorIndex",
    "ThreadService",
]
