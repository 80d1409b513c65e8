"""Read-only access to live cluster objects through kubectl.

Authentication is whatever kubectl's current context provides.
"""

from __future__ import annotations

import json
import logging

from kapply_core.errors import CommandError, KapplyError, ObjectNotFoundError
from kapply_core.models import NamespacedName
from kapply_core.utils.command import run_command

logger = logging.getLogger(__name__)


class KubectlAccessor:
    def __init__(self, kubectl: str = "kubectl"):
        self.kubectl = kubectl

    def get(self, kind: str, name: NamespacedName, group: str = "") -> dict:
        """Return the decoded object, or raise ObjectNotFoundError."""
        resource = f"{kind.lower()}.{group}" if group else kind.lower()
        try:
            out = run_command(
                [self.kubectl, "get", resource, name.name, "--namespace", name.namespace, "--output", "json"]
            )
        except CommandError as e:
            if "NotFound" in e.output:
                raise ObjectNotFoundError(kind, str(name)) from e
            raise
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise KapplyError(f"kubectl returned invalid JSON for {kind} {name}: {e}") from e
