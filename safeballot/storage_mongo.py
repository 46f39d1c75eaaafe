# storage_mongo.py
import logging
from typing import Optional, List

from pymongo import MongoClient

from safeballot.config import MONGO_URI, MONGO_DB, STATE_COLLECTION_NAME
from safeballot.storage import KeyValueStore

logger = logging.getLogger(__name__)


class MongoStore(KeyValueStore):
    def __init__(self, collection=None):
        """Initialize the backing collection.

        Args:
            collection: an already opened collection; when omitted a
                connection is made from MONGO_URI / MONGO_DB
        """
        self.client = None
        if collection is not None:
            self.collection = collection
            return
        try:
            self.client = MongoClient(MONGO_URI)
            self.collection = self.client[MONGO_DB][STATE_COLLECTION_NAME]
            # Test connection
            self.client.server_info()
            logger.info(f"Connected to MongoDB at {MONGO_URI}, database: {MONGO_DB}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve a stored value

        Args:
            key: the state key, e.g. digital_key_<ballotId>

        Returns:
            The value if present, None otherwise
        """
        doc = self.collection.find_one({"_id": key})
        if doc is None:
            return None
        return doc.get("value")

    def set(self, key: str, value: str) -> None:
        self.collection.update_one({"_id": key}, {"$set": {"value": str(value)}}, upsert=True)

    def remove(self, key: str) -> None:
        result = self.collection.delete_one({"_id": key})
        if result.deleted_count > 0:
            logger.info(f"State key {key} removed")

    def keys(self) -> List[str]:
        return [doc["_id"] for doc in self.collection.find({}, {"_id": 1})]

    def close(self):
        """Close MongoDB connection"""
        if self.client is None:
            return
        try:
            self.client.close()
            logger.info("MongoDB connection closed")
        except Exception as e:
            logger.error(f"Error closing MongoDB connection: {e}")
