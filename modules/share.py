# -*- coding: utf-8 -*-
import os
import shutil
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import smbclient
from smbprotocol.exceptions import SMBException

from modules.errors import InvalidConfiguration, ShareUnavailable, TransferError, RenameError

logger = logging.getLogger(__name__)

SMB_DEFAULT_PORT = 445
SMB_ENV_PREFIX = "SMB_"


@dataclass(frozen=True)
class ShareEntry:
    name: str
    path: str
    is_directory: bool


def join_share_path(*parts: str) -> str:
    """Joins share-relative path segments with '/', dropping empty segments."""
    segments = []
    for part in parts:
        segments.extend(s for s in part.replace("\\", "/").split("/") if s)
    return "/".join(segments)


class RemoteShare:
    """
    Operations both batch pipelines need from a remote file share.
    Paths are share-relative and '/'-separated. No method retries; a raised
    error is terminal for the single item being processed.
    """

    def list(self, path: str) -> List[ShareEntry]:
        raise NotImplementedError

    def download(self, remote_path: str, local_path: str) -> None:
        raise NotImplementedError

    def upload(self, data: Union[bytes, str], remote_path: str) -> None:
        raise NotImplementedError

    def rename(self, old_path: str, new_path: str, entry: Optional[ShareEntry] = None) -> None:
        raise NotImplementedError


@dataclass
class SmbConfig:
    host: str
    share: str
    username: Optional[str] = None
    password: Optional[str] = None
    domain: Optional[str] = None
    port: int = SMB_DEFAULT_PORT
    connection_timeout: int = 60

    def __post_init__(self):
        if not self.host:
            raise InvalidConfiguration("SMB host is not configured (set --host or SMB_HOST).")
        if not self.share:
            raise InvalidConfiguration("SMB share name is not configured (set --share or SMB_SHARE).")
        try:
            self.port = int(self.port)
        except (TypeError, ValueError):
            raise InvalidConfiguration(f"SMB port must be an integer, got '{self.port}'.")

    @classmethod
    def from_env(cls, environ=None, **overrides) -> "SmbConfig":
        environ = os.environ if environ is None else environ
        values = {
            "host": environ.get(f"{SMB_ENV_PREFIX}HOST", ""),
            "share": environ.get(f"{SMB_ENV_PREFIX}SHARE", ""),
            "username": environ.get(f"{SMB_ENV_PREFIX}USERNAME"),
            "password": environ.get(f"{SMB_ENV_PREFIX}PASSWORD"),
            "domain": environ.get(f"{SMB_ENV_PREFIX}DOMAIN"),
            "port": environ.get(f"{SMB_ENV_PREFIX}PORT", SMB_DEFAULT_PORT),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def qualified_username(self) -> Optional[str]:
        if self.username and self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


class SmbShare(RemoteShare):
    """RemoteShare backed by an authenticated smbprotocol session."""

    def __init__(self, config: SmbConfig):
        self.config = config
        self._connected = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def connect(self):
        logger.debug(f"Registering SMB session for {self.config.host}:{self.config.port}")
        try:
            smbclient.register_session(
                self.config.host,
                username=self.config.qualified_username,
                password=self.config.password,
                port=self.config.port,
                connection_timeout=self.config.connection_timeout,
            )
        except (SMBException, OSError, ValueError) as e:
            raise ShareUnavailable(f"Could not connect to '{self.config.host}': {e}") from e
        self._connected = True
        logger.info(f"Connected to share '{self.config.share}' on '{self.config.host}'.")

    def close(self):
        if not self._connected:
            return
        try:
            smbclient.delete_session(self.config.host, port=self.config.port)
        except (SMBException, OSError) as e:
            logger.warning(f"Failed to close SMB session cleanly: {e}")
        self._connected = False

    def unc_path(self, path: str) -> str:
        relative = join_share_path(path).replace("/", "\\")
        unc = f"\\\\{self.config.host}\\{self.config.share}"
        return f"{unc}\\{relative}" if relative else unc

    def list(self, path: str) -> List[ShareEntry]:
        try:
            entries = [
                ShareEntry(name=e.name, path=join_share_path(path, e.name), is_directory=e.is_dir())
                for e in smbclient.scandir(self.unc_path(path))
                if e.name not in (".", "..")
            ]
        except (SMBException, OSError) as e:
            raise ShareUnavailable(f"Cannot list '{path}': {e}") from e
        logger.debug(f"Listed {len(entries)} entries in '{path}'")
        return entries

    def download(self, remote_path: str, local_path: str) -> None:
        try:
            with smbclient.open_file(self.unc_path(remote_path), mode="rb") as src, open(local_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except (SMBException, OSError) as e:
            raise TransferError(f"Could not read '{remote_path}': {e}") from e

    def upload(self, data: Union[bytes, str], remote_path: str) -> None:
        try:
            with smbclient.open_file(self.unc_path(remote_path), mode="wb") as dst:
                if isinstance(data, (bytes, bytearray)):
                    dst.write(data)
                else:
                    with open(data, "rb") as src:
                        shutil.copyfileobj(src, dst)
        except (SMBException, OSError) as e:
            raise TransferError(f"Could not write '{remote_path}': {e}") from e

    def rename(self, old_path: str, new_path: str, entry: Optional[ShareEntry] = None) -> None:
        try:
            smbclient.rename(self.unc_path(old_path), self.unc_path(new_path))
        except (SMBException, OSError) as e:
            raise RenameError(f"Could not rename '{old_path}' to '{new_path}': {e}") from e
