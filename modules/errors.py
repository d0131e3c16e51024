# -*- coding: utf-8 -*-


class ShareToolkitError(Exception):
    """Base class for every error raised by the share image toolkit."""
    kind: str = "error"


class InvalidConfiguration(ShareToolkitError):
    """Bad option values or missing staging directories. Aborts before any file is touched."""
    kind = "invalid_configuration"


class ShareUnavailable(ShareToolkitError):
    """The share session is down or a directory cannot be listed."""
    kind = "share_unavailable"


class TransferError(ShareToolkitError):
    kind = "transfer"


class DecodeError(ShareToolkitError):
    kind = "decode"


class EncodeError(ShareToolkitError):
    kind = "encode"


class RenameError(ShareToolkitError):
    kind = "rename"


class CleanupError(ShareToolkitError):
    """A local staging file could not be deleted. Never fails the entry."""
    kind = "cleanup"
