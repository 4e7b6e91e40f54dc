import logging
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.errors import ServerSelectionTimeoutError
from pymongo.server_api import ServerApi

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns the MongoClient for one server process.

    Connects lazily on first use and is reused across requests until
    ``close()`` is called.
    """

    def __init__(self, uri: str, db_name: str, timeout_ms: int = 5000) -> None:
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self._client: MongoClient | None = None

    def connect(self) -> Any:
        if self._client is None:
            client = MongoClient(
                self.uri,
                serverSelectionTimeoutMS=self.timeout_ms,
                socketTimeoutMS=45000,
                server_api=ServerApi('1')
            )
            try:
                client.admin.command("ping")
            except ServerSelectionTimeoutError as exc:
                client.close()
                raise RuntimeError("Unable to connect to MongoDB") from exc
            self._client = client
            logger.info("Connected To MongoDB!")
            ensure_indexes(client[self.db_name])

        return self._client[self.db_name]

    @property
    def db(self) -> Any:
        return self.connect()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")


def ensure_indexes(db: Any) -> None:
    db.users.create_index([("email", ASCENDING)], unique=True)
    db.sessions.create_index([("user", ASCENDING), ("createdAt", ASCENDING)])
    db.questions.create_index([("session", ASCENDING)])
