"""Pyright language server session."""

import shutil
from typing import List

from pyrightbridge.servers.base import BaseBridgeSession

PYRIGHT_LANGSERVER = "pyright-langserver"


class PyrightSession(BaseBridgeSession):
    """Session backed by `pyright-langserver --stdio`."""

    @property
    def server_command(self) -> List[str]:
        """Get the command used to launch Pyright.

        Returns:
            The configured backend command, or the `pyright-langserver`
            executable found on PATH.
        """
        if self.config.backend_command:
            return list(self.config.backend_command)

        executable = shutil.which(PYRIGHT_LANGSERVER) or PYRIGHT_LANGSERVER
        return [executable, "--stdio"]
