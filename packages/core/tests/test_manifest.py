"""Tests for manifest stream splitting and object decoding."""

import pytest

from kapply_core.errors import ManifestError
from kapply_core.models import PENDING, NamespacedName
from kapply_core.rollout.manifest import build_rollout, parse_object, split_documents

STREAM = """\
apiVersion: v1
kind: Service
metadata:
  name: web
  namespace: prod
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: web
  namespace: prod
spec:
  replicas: 3
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: settings
data:
  separator: "a---b"
"""


class TestSplitDocuments:
    def test_splits_on_separator_lines(self):
        assert len(split_documents(STREAM)) == 3

    def test_drops_empty_documents(self):
        stream = "---\nkind: A\n---\n\n---\nkind: B\n---\n"
        docs = split_documents(stream)
        assert [d.strip() for d in docs] == ["kind: A", "kind: B"]

    def test_dashes_inside_values_do_not_split(self):
        docs = split_documents(STREAM)
        assert 'separator: "a---b"' in docs[2]

    def test_empty_stream(self):
        assert split_documents("") == []


class TestParseObject:
    def test_reads_kind_version_and_name(self):
        obj = parse_object("apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n  namespace: prod\n")
        assert obj.kind == "Deployment"
        assert obj.api_version == "apps/v1"
        assert obj.name == NamespacedName("prod", "web")
        assert obj.group == "apps"
        assert obj.done is False
        assert obj.rollout_status_history == []

    def test_namespace_defaults(self):
        obj = parse_object("apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: settings\n")
        assert obj.name == NamespacedName("default", "settings")
        assert obj.group == ""

    def test_keeps_raw_text(self):
        raw = "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: settings\n"
        assert parse_object(raw).raw == raw

    def test_scalar_document_raises(self):
        with pytest.raises(ManifestError, match="expected a mapping"):
            parse_object("just a string\n")

    def test_missing_name_raises(self):
        with pytest.raises(ManifestError, match="missing kind or metadata.name"):
            parse_object("apiVersion: v1\nkind: ConfigMap\n")

    def test_invalid_yaml_raises(self):
        with pytest.raises(ManifestError, match="could not decode"):
            parse_object("kind: [unclosed\n")


class TestBuildRollout:
    def test_objects_keep_stream_order(self):
        rollout = build_rollout("overlays/prod", STREAM)
        assert rollout.path == "overlays/prod"
        assert rollout.status == PENDING
        assert [o.kind for o in rollout.objects] == ["Service", "Deployment", "ConfigMap"]

    def test_bad_document_fails_whole_rollout(self):
        with pytest.raises(ManifestError):
            build_rollout("p", STREAM + "---\n- a list\n")
