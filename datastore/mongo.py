"""MongoDB connection helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from errors import MongoConnectionError
from settings import COLLECTION_NAME, CONNECT_TIMEOUT_SECONDS, DATABASE_NAME

logger = logging.getLogger(__name__)


@contextmanager
def open_client(
    uri: str,
    label: str = "mongo",
    timeout: float = CONNECT_TIMEOUT_SECONDS,
) -> Iterator[MongoClient]:
    """Connect, verify reachability with ``ping`` and always close on exit.

    ``timeout`` bounds only the initial connection attempt.
    """
    timeout_ms = int(timeout * 1000)
    try:
        client: MongoClient = MongoClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
    except PyMongoError as exc:
        raise MongoConnectionError(f"Invalid {label} connection settings: {exc}") from exc

    try:
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            raise MongoConnectionError(f"Could not connect to {label} MongoDB: {exc}") from exc
        logger.debug("Connected to %s MongoDB", label)
        yield client
    finally:
        client.close()
        logger.debug("Disconnected from %s MongoDB", label)


def get_collection(client: MongoClient) -> Collection[Mapping[str, Any]]:
    return client[DATABASE_NAME][COLLECTION_NAME]
