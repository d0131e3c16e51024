import io
import os
import posixpath

import pytest
from PIL import Image

from modules.errors import ShareUnavailable, TransferError, RenameError
from modules.share import RemoteShare, ShareEntry, join_share_path


def image_bytes(size=(8, 6), fmt="PNG", mode="RGB", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeShare(RemoteShare):
    """In-memory share. Directory listings keep insertion order; failures are injected per path."""

    def __init__(self, files=None, dirs=()):
        self.files = {}
        self.children = {"": []}
        self.calls = []
        self.fail_list = set()
        self.fail_download = set()
        self.fail_upload = set()
        self.fail_rename = set()
        for path in dirs:
            self.add_dir(path)
        for path, data in (files or {}).items():
            self.add_file(path, data)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def unc_path(self, path):
        return f"\\\\fake\\share\\{path}"

    def add_dir(self, path):
        missing = []
        path = join_share_path(path)
        while path not in self.children:
            missing.append(path)
            path = posixpath.dirname(path)
        for path in reversed(missing):
            self.children[posixpath.dirname(path)].append(posixpath.basename(path))
            self.children[path] = []

    def add_file(self, path, data):
        path = join_share_path(path)
        parent = posixpath.dirname(path)
        self.add_dir(parent)
        if path not in self.files:
            self.children[parent].append(posixpath.basename(path))
        self.files[path] = bytes(data)

    def calls_for(self, operation):
        return [args for op, *args in self.calls if op == operation]

    def list(self, path):
        self.calls.append(("list", path))
        path = join_share_path(path)
        if path in self.fail_list or path not in self.children:
            raise ShareUnavailable(f"Cannot list '{path}'")
        return [
            ShareEntry(name=name, path=join_share_path(path, name),
                       is_directory=join_share_path(path, name) in self.children)
            for name in self.children[path]
        ]

    def download(self, remote_path, local_path):
        self.calls.append(("download", remote_path, local_path))
        if remote_path in self.fail_download or remote_path not in self.files:
            raise TransferError(f"Could not read '{remote_path}'")
        with open(local_path, "wb") as f:
            f.write(self.files[remote_path])

    def upload(self, data, remote_path):
        self.calls.append(("upload", remote_path))
        if remote_path in self.fail_upload:
            raise TransferError(f"Could not write '{remote_path}'")
        if not isinstance(data, (bytes, bytearray)):
            with open(data, "rb") as f:
                data = f.read()
        self.add_file(remote_path, data)

    def rename(self, old_path, new_path, entry=None):
        self.calls.append(("rename", old_path, new_path))
        if old_path in self.fail_rename or posixpath.dirname(new_path) not in self.children:
            raise RenameError(f"Could not rename '{old_path}' to '{new_path}'")
        data = self.files.pop(old_path)
        self.children[posixpath.dirname(old_path)].remove(posixpath.basename(old_path))
        self.add_file(new_path, data)


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return str(path)


def staged_files(staging_dir):
    return sorted(os.listdir(staging_dir))
