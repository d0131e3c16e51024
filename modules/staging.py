# -*- coding: utf-8 -*-
import os
import logging

from modules.errors import InvalidConfiguration, CleanupError

logger = logging.getLogger(__name__)


class StagingArea:
    """Local scratch directory holding at most one downloaded copy per entry being processed."""

    def __init__(self, root: str):
        if not os.path.isdir(root):
            raise InvalidConfiguration(
                f"Staging path '{root}' does not exist. Please create it before running."
            )
        self.root = os.path.abspath(root)

    def path_for(self, entry) -> str:
        return os.path.join(self.root, os.path.basename(entry.name))

    def release(self, local_path: str) -> None:
        if not os.path.exists(local_path):
            return
        try:
            os.remove(local_path)
            logger.debug(f"Removed staging file '{local_path}'")
        except OSError as e:
            raise CleanupError(f"Could not delete staging file '{local_path}': {e}") from e
