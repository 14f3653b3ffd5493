"""
Durable key/value storage for run state

FileStore keeps each key as a file under a local directory; WebDAVStore keeps
it as a resource inside a WebDAV collection (Nextcloud, Radicale, ...), which
lets a container without persistent volumes keep its state remotely.
"""

import os
import logging
from typing import Dict, Optional

import requests
from requests.auth import HTTPBasicAuth

from bdaybot.errors import BirthdayBotError, ErrorKind

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface shared by the storage backends"""

    def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    def put(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


class FileStore(KeyValueStore):
    """Store keys as files in a local directory"""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def _path(self, key: str) -> str:
        return os.path.join(self.base_dir, key.lstrip('/'))

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BirthdayBotError(ErrorKind.STORAGE_FAILURE, f"Could not read {path}", cause=e)

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
            tmp_path = f"{path}.tmp"
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise BirthdayBotError(ErrorKind.STORAGE_FAILURE, f"Could not write {path}", cause=e)

    def describe(self) -> str:
        return f"file store at {self.base_dir}"


class WebDAVStore(KeyValueStore):
    """Store keys as resources inside a WebDAV collection"""

    def __init__(self, collection_url: str, username: str = None, password: str = None, timeout: int = 10):
        self.collection_url = collection_url.rstrip('/')
        self.auth = HTTPBasicAuth(username, password) if username else None
        self.timeout = timeout

    def _url(self, key: str) -> str:
        return f"{self.collection_url}/{key.lstrip('/')}"

    def get(self, key: str) -> Optional[bytes]:
        url = self._url(key)
        try:
            response = requests.get(url, auth=self.auth, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise BirthdayBotError(ErrorKind.STORAGE_FAILURE, f"Could not fetch {url}", cause=e)

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise BirthdayBotError(
                ErrorKind.STORAGE_FAILURE,
                f"Unexpected status {response.status_code} fetching {url}",
                metadata={'status_code': response.status_code},
            )
        return response.content

    def put(self, key: str, data: bytes) -> None:
        url = self._url(key)
        try:
            response = requests.put(
                url, data=data, auth=self.auth, timeout=self.timeout,
                headers={'Content-Type': 'text/plain; charset=utf-8'},
            )
        except requests.exceptions.RequestException as e:
            raise BirthdayBotError(ErrorKind.STORAGE_FAILURE, f"Could not upload {url}", cause=e)

        if response.status_code not in (200, 201, 204):
            raise BirthdayBotError(
                ErrorKind.STORAGE_FAILURE,
                f"Unexpected status {response.status_code} uploading {url}",
                metadata={'status_code': response.status_code},
            )

    def describe(self) -> str:
        return f"WebDAV store at {self.collection_url}"


def create_store(config: Dict) -> KeyValueStore:
    """Build the storage backend selected by STATE_BACKEND"""
    backend = config['backend']
    if backend == 'webdav':
        if not config['webdav_url']:
            raise BirthdayBotError(
                ErrorKind.CONFIGURATION_UNAVAILABLE,
                "STATE_WEBDAV_URL is required when STATE_BACKEND=webdav",
            )
        return WebDAVStore(config['webdav_url'], config['webdav_username'], config['webdav_password'])
    if backend != 'file':
        logger.warning(f"Unknown STATE_BACKEND '{backend}', using local files")
    return FileStore(config['state_dir'])
