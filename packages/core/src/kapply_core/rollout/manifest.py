"""Splitting rendered manifest streams into ManifestObjects."""

from __future__ import annotations

import re

import yaml

from kapply_core.errors import ManifestError
from kapply_core.models import DEFAULT_NAMESPACE, ManifestObject, NamespacedName, Rollout

_SEPARATOR_RE = re.compile(r"^---[ \t]*(?:\r?\n|\Z)", re.MULTILINE)


def split_documents(stream: str) -> list[str]:
    """Split a YAML stream on lines consisting of ``---``, dropping empty documents."""
    return [doc for doc in _SEPARATOR_RE.split(stream) if doc.strip()]


def parse_object(raw: str) -> ManifestObject:
    """Decode the kind, apiVersion and namespaced name of one YAML document."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ManifestError(f"could not decode manifest: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"expected a mapping, got {type(data).__name__}: {raw[:200]!r}")

    kind = data.get("kind") or ""
    metadata = data.get("metadata") or {}
    name = metadata.get("name") or ""
    if not kind or not name:
        raise ManifestError(f"manifest is missing kind or metadata.name: {raw[:200]!r}")

    return ManifestObject(
        raw=raw,
        kind=kind,
        api_version=data.get("apiVersion") or "",
        name=NamespacedName(namespace=metadata.get("namespace") or DEFAULT_NAMESPACE, name=name),
    )


def build_rollout(path: str, stream: str) -> Rollout:
    """Decode every document rendered for ``path`` into a Pending Rollout, in stream order."""
    rollout = Rollout(path=path)
    for doc in split_documents(stream):
        rollout.objects.append(parse_object(doc))
    return rollout
