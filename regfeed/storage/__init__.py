from regfeed.storage.models import AlertRow, Base
from regfeed.storage.upsert import AlertSink, SqlAlchemyAlertSink

__all__ = [
    "AlertRow",
    "AlertSink",
    "Base",
    "SqlAlchemyAlertSink",
]
