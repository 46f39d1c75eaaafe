# safeballot/storage.py
import json
import logging
import os
from typing import Optional, Dict, List

from cryptography.fernet import Fernet, InvalidToken

from safeballot import config

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Durable string key-value store holding the voter's per-ballot state.

    Values are plain strings, the same way a browser profile's local storage
    holds them. Subclasses only implement the four primitives below.
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class NamespacedStore(KeyValueStore):
    """View of a shared store holding only one voter session's keys."""

    def __init__(self, backing: KeyValueStore, namespace: str):
        self.backing = backing
        self.prefix = f"{namespace}:"

    def get(self, key: str) -> Optional[str]:
        return self.backing.get(self.prefix + key)

    def set(self, key: str, value: str) -> None:
        self.backing.set(self.prefix + key, value)

    def remove(self, key: str) -> None:
        self.backing.remove(self.prefix + key)

    def keys(self) -> List[str]:
        return [k[len(self.prefix):] for k in self.backing.keys() if k.startswith(self.prefix)]


def load_fernet(key_file: str) -> Fernet:
    """Load the Fernet key from disk, generating it on first use."""
    # In production: use secure key management (Vault/KMS) and never hardcode keys.
    directory = os.path.dirname(key_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if not os.path.exists(key_file):
        fernet_key = Fernet.generate_key()
        with open(key_file, "wb") as kf:
            kf.write(fernet_key)
        logger.info(f"Generated new state encryption key at {key_file}")
    else:
        with open(key_file, "rb") as kf:
            fernet_key = kf.read()
    return Fernet(fernet_key)


class JsonFileStore(KeyValueStore):
    """Key-value store persisted as one JSON document on disk.

    When a Fernet instance is given the whole document is encrypted at rest.
    """

    def __init__(self, path: str = config.STATE_DB_PATH, fernet: Optional[Fernet] = None):
        self.path = path
        self.fernet = fernet
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(path):
            self._write_db({"values": {}})

    def _read_db(self) -> Dict[str, Dict[str, str]]:
        """
        Read the state file safely.
        If file is empty, corrupted or unreadable with the current key,
        auto-reset to {"values": {}}.
        """
        try:
            with open(self.path, "rb") as f:
                raw = f.read()
            if self.fernet is not None:
                raw = self.fernet.decrypt(raw)
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict) or not isinstance(data.get("values"), dict):
                raise ValueError("unexpected state layout")
            return data
        except InvalidToken:
            logger.error(f"State file {self.path} cannot be decrypted with the configured key; resetting")
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError, FileNotFoundError):
            logger.warning(f"State file {self.path} is empty or invalid; resetting")
        reset_data = {"values": {}}
        self._write_db(reset_data)
        return reset_data

    def _write_db(self, data: Dict[str, Dict[str, str]]):
        raw = json.dumps(data, indent=2).encode("utf-8")
        if self.fernet is not None:
            raw = self.fernet.encrypt(raw)
        with open(self.path, "wb") as f:
            f.write(raw)

    def get(self, key: str) -> Optional[str]:
        return self._read_db()["values"].get(key)

    def set(self, key: str, value: str) -> None:
        db = self._read_db()
        db["values"][key] = str(value)
        self._write_db(db)

    def remove(self, key: str) -> None:
        db = self._read_db()
        if db["values"].pop(key, None) is not None:
            self._write_db(db)

    def keys(self) -> List[str]:
        return list(self._read_db()["values"].keys())


def build_store(backend: str = config.STORAGE_BACKEND) -> KeyValueStore:
    """Create the durable store selected by configuration."""
    if backend == "memory":
        return MemoryStore()
    if backend == "mongo":
        from safeballot.storage_mongo import MongoStore
        return MongoStore()
    if backend == "json":
        fernet = load_fernet(config.STATE_KEY_FILE) if config.STATE_KEY_FILE else None
        return JsonFileStore(config.STATE_DB_PATH, fernet=fernet)
    raise ValueError(f"Unknown storage backend: {backend!r}")
