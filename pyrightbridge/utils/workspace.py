"""Workspace utilities for the Pyright WebSocket Bridge."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlsplit

from pyrightbridge.config import DEFAULT_WORKSPACE_NAME

CONFIG_FILENAME = "pyrightconfig.json"

# Two or more characters so that Windows drive letters are not mistaken for schemes
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]+:")


class Workspace:
    """Resolves document locations against the execution root."""

    def __init__(
        self,
        execution_root: str,
        reference_root: Optional[str] = None,
        workspace_name: str = DEFAULT_WORKSPACE_NAME
    ):
        """Initialize the workspace.

        Args:
            execution_root: Absolute directory the backend treats as its workspace root.
            reference_root: Secondary root substituted into the deployed configuration.
            workspace_name: Name reported in the workspace folder list.
        """
        self.execution_root = os.path.abspath(execution_root)
        self.reference_root = reference_root
        self.workspace_name = workspace_name
        self.logger = logging.getLogger("pyrightbridge.workspace")

        if not os.path.isdir(self.execution_root):
            raise ValueError(f"Execution root is not a directory: {self.execution_root}")

    @property
    def root_uri(self) -> str:
        return self.path_to_uri(self.execution_root)

    @staticmethod
    def path_to_uri(path: str) -> str:
        """Convert an absolute file path to a file URI.

        Args:
            path: Absolute file path to convert.

        Returns:
            File URI.
        """
        return Path(os.path.abspath(path)).as_uri()

    @staticmethod
    def uri_to_path(uri: Any) -> Optional[str]:
        """Convert a file URI to an absolute file path.

        Args:
            uri: File URI to convert.

        Returns:
            The file path, or None if `uri` is not an absolute file URI.
        """
        if not isinstance(uri, str):
            return None

        try:
            parts = urlsplit(uri)
        except ValueError:
            return None

        if parts.scheme != "file" or parts.netloc not in ("", "localhost"):
            return None

        path = unquote(parts.path)
        if not path.startswith("/"):
            return None
        return path

    def _join(self, location: str) -> str:
        return self.path_to_uri(self._under_root(location))

    def _under_root(self, path: str) -> str:
        return os.path.join(self.execution_root, path.lstrip("/"))

    def normalize_uri(self, uri: Any) -> Any:
        """Rewrite a document location into an absolute file URI.

        Relative paths, and absolute paths to files that do not exist, are
        joined with the execution root. File URIs that do not point to an
        existing file are retried relative to the execution root and left
        unchanged if that fails too. URIs with any other scheme
        are left unchanged. Malformed values are treated as relative paths.

        Args:
            uri: The `textDocument.uri` value sent by the client.

        Returns:
            The normalized location.
        """
        if not isinstance(uri, str):
            self.logger.warning(f"Malformed document URI {uri!r}, treating it as a relative path")
            return self._join(str(uri))

        try:
            parts = urlsplit(uri)
        except ValueError:
            self.logger.warning(f"Malformed document URI {uri!r}, treating it as a relative path")
            return self._join(uri)

        if parts.scheme == "file":
            path = self.uri_to_path(uri)
            if path is None:
                # file:relative/path or file://host/path
                location = unquote(parts.netloc + parts.path).lstrip("/")
                self.logger.warning(f"Malformed file URI {uri!r}, treating it as a relative path")
                return self._join(location)

            if os.path.isfile(path):
                return uri

            candidate = self._under_root(path)
            if os.path.isfile(candidate):
                return self.path_to_uri(candidate)

            return uri

        if _SCHEME_RE.match(uri):
            return uri

        if os.path.isabs(uri) and os.path.isfile(uri):
            return self.path_to_uri(uri)

        # Plain paths, absolute ones included, resolve under the execution root
        return self._join(uri)

    def deploy_pyright_config(self, template_path: str) -> Optional[str]:
        """Deploy a pyrightconfig.json template into the execution root.

        `${BOT_ROOT}` is replaced with the execution root and `${JESSE_ROOT}`
        with the reference root.

        Args:
            template_path: Path to the template file.

        Returns:
            Path of the deployed file, or None if the template does not exist.
        """
        if not os.path.isfile(template_path):
            self.logger.warning(f"No {CONFIG_FILENAME} template found at {template_path}")
            return None

        with open(template_path, encoding="utf-8") as f:
            config = f.read()

        config = config.replace("${BOT_ROOT}", self.execution_root)
        config = config.replace("${JESSE_ROOT}", self.reference_root or "")

        target_path = os.path.join(self.execution_root, CONFIG_FILENAME)
        with open(target_path, "w", encoding="utf-8") as f:
            f.write(config)

        self.logger.info(f"Deployed {CONFIG_FILENAME} to {target_path}")
        return target_path
