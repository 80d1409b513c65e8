"""The external render and apply tools, invoked as black boxes."""

from __future__ import annotations

import logging

from kapply_core.errors import ApplyError, RenderError
from kapply_core.utils.command import run_command

logger = logging.getLogger(__name__)


class KustomizeRenderer:
    def __init__(self, kustomize: str = "kustomize", cwd: str | None = None):
        self.kustomize = kustomize
        self.cwd = cwd

    def render(self, path: str) -> str:
        """Return the YAML stream ``kustomize build`` produces for ``path``."""
        try:
            return run_command([self.kustomize, "build", path], cwd=self.cwd, error_cls=RenderError)
        except RenderError as e:
            logger.error("failed to kustomize %s: %s", path, e.output)
            raise


class KubectlApplier:
    def __init__(self, kubectl: str = "kubectl", cwd: str | None = None):
        self.kubectl = kubectl
        self.cwd = cwd

    def apply(self, document: str) -> str:
        """Apply one YAML document from stdin and return the tool's stripped output.

        Raises ApplyError whose ``output`` holds what kubectl printed.
        """
        out = run_command([self.kubectl, "apply", "-f", "-"], input=document, cwd=self.cwd, error_cls=ApplyError)
        return out.strip()
