"""
Key/value store tests for the file and WebDAV backends
"""

import pytest
import requests

from bdaybot import storage
from bdaybot.errors import BirthdayBotError, ErrorKind
from bdaybot.storage import FileStore, WebDAVStore, create_store


class FakeResponse:
    def __init__(self, status_code, content=b''):
        self.status_code = status_code
        self.content = content


class TestFileStore:
    """Local directory backend"""

    @pytest.mark.unit
    def test_missing_key(self, tmp_path):
        assert FileStore(str(tmp_path)).get('last-run.txt') is None

    @pytest.mark.unit
    def test_put_then_get(self, tmp_path):
        """Writes create the directory and leave no temp file behind"""
        store = FileStore(str(tmp_path / 'state'))
        store.put('last-run.txt', b'2024-05-15')
        assert store.get('last-run.txt') == b'2024-05-15'
        assert sorted(p.name for p in (tmp_path / 'state').iterdir()) == ['last-run.txt']

    @pytest.mark.unit
    def test_unwritable_directory(self, tmp_path):
        """OS errors become storage failures"""
        blocker = tmp_path / 'blocker'
        blocker.write_text('file, not a directory')
        with pytest.raises(BirthdayBotError) as exc:
            FileStore(str(blocker)).put('last-run.txt', b'x')
        assert exc.value.kind == ErrorKind.STORAGE_FAILURE


class TestWebDAVStore:
    """Remote collection backend"""

    @pytest.mark.unit
    def test_get_existing(self, monkeypatch):
        calls = []

        def fake_get(url, **kwargs):
            calls.append(url)
            return FakeResponse(200, b'2024-05-14')

        monkeypatch.setattr(storage.requests, 'get', fake_get)
        store = WebDAVStore('https://dav.example.com/state/', 'user', 'pw')
        assert store.get('last-run.txt') == b'2024-05-14'
        assert calls == ['https://dav.example.com/state/last-run.txt']

    @pytest.mark.unit
    def test_get_missing(self, monkeypatch):
        monkeypatch.setattr(storage.requests, 'get', lambda url, **kwargs: FakeResponse(404))
        assert WebDAVStore('https://dav.example.com/state').get('last-run.txt') is None

    @pytest.mark.unit
    def test_get_server_error(self, monkeypatch):
        monkeypatch.setattr(storage.requests, 'get', lambda url, **kwargs: FakeResponse(500))
        with pytest.raises(BirthdayBotError) as exc:
            WebDAVStore('https://dav.example.com/state').get('last-run.txt')
        assert exc.value.kind == ErrorKind.STORAGE_FAILURE
        assert exc.value.metadata == {'status_code': 500}

    @pytest.mark.unit
    def test_put(self, monkeypatch):
        sent = {}

        def fake_put(url, data=None, **kwargs):
            sent['url'], sent['data'] = url, data
            return FakeResponse(201)

        monkeypatch.setattr(storage.requests, 'put', fake_put)
        WebDAVStore('https://dav.example.com/state').put('last-run.txt', b'2024-05-15')
        assert sent == {'url': 'https://dav.example.com/state/last-run.txt', 'data': b'2024-05-15'}

    @pytest.mark.unit
    def test_network_error(self, monkeypatch):
        def fake_put(url, **kwargs):
            raise requests.exceptions.Timeout("slow")

        monkeypatch.setattr(storage.requests, 'put', fake_put)
        with pytest.raises(BirthdayBotError) as exc:
            WebDAVStore('https://dav.example.com/state').put('last-run.txt', b'x')
        assert isinstance(exc.value.cause, requests.exceptions.Timeout)


class TestCreateStore:
    """Backend selection"""

    def config(self, **overrides):
        config = {'backend': 'file', 'state_dir': './data', 'webdav_url': None,
                  'webdav_username': None, 'webdav_password': None}
        config.update(overrides)
        return config

    @pytest.mark.unit
    def test_file_backend(self):
        assert isinstance(create_store(self.config()), FileStore)

    @pytest.mark.unit
    def test_unknown_backend_falls_back_to_files(self):
        assert isinstance(create_store(self.config(backend='s3')), FileStore)

    @pytest.mark.unit
    def test_webdav_needs_url(self):
        with pytest.raises(BirthdayBotError) as exc:
            create_store(self.config(backend='webdav'))
        assert exc.value.kind == ErrorKind.CONFIGURATION_UNAVAILABLE

    @pytest.mark.unit
    def test_webdav_backend(self):
        store = create_store(self.config(backend='webdav', webdav_url='https://dav.example.com/s'))
        assert isinstance(store, WebDAVStore)
