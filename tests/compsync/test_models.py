"""Tests for identifiers, content hashing and immutable records."""

from __future__ import annotations

import dataclasses

import pytest

from compsync.engines.importer.models import (
    ComponentId,
    ComponentObject,
    DependencyAuditResult,
    ImportDetails,
    ImportResult,
    ResolvedClosure,
    content_hash,
    normalize_version,
    version_key,
)
from compsync.exceptions import ConfigurationError


class TestComponentId:
    def test_parse_scope_name_version(self):
        cid = ComponentId.parse("remote/bar/foo@0.0.1")
        assert cid == ComponentId("remote", "bar/foo", "0.0.1")
        assert cid.key == "remote/bar/foo"
        assert str(cid) == "remote/bar/foo@0.0.1"

    def test_parse_without_version(self):
        cid = ComponentId.parse("remote/bar/foo")
        assert cid.version is None
        assert str(cid) == "remote/bar/foo"

    def test_latest_markers_mean_unversioned(self):
        assert ComponentId.parse("remote/foo@latest").version is None
        assert ComponentId.parse("remote/foo@*").version is None
        assert normalize_version(" ") is None

    def test_bare_name_uses_default_scope(self):
        assert ComponentId.parse("foo", default_scope="remote") == ComponentId("remote", "foo")
        assert not ComponentId.parse("foo").is_exported

    def test_unknown_leading_segment_is_a_namespace(self):
        cid = ComponentId.parse("bar/foo2@0.0.1", default_scope="remote", known_scopes={"remote"})
        assert cid == ComponentId("remote", "bar/foo2", "0.0.1")

    def test_known_scope_stays_a_scope(self):
        known = {"remote", "utils"}
        assert ComponentId.parse(
            "utils/pad@1.0.0", default_scope="remote", known_scopes=known
        ) == ComponentId("utils", "pad", "1.0.0")
        assert ComponentId.parse(
            "remote/bar/foo", default_scope="remote", known_scopes=known
        ) == ComponentId("remote", "bar/foo")

    def test_without_known_scopes_first_segment_is_scope(self):
        assert ComponentId.parse("bar/foo2", default_scope="remote") == ComponentId("bar", "foo2")

    def test_equality_includes_version(self):
        assert ComponentId("s", "a", "1") != ComponentId("s", "a", "2")
        assert ComponentId("s", "a", "1").without_version() == ComponentId("s", "a")

    def test_empty_identifier_rejected(self):
        with pytest.raises(ConfigurationError):
            ComponentId.parse("  ")

    def test_immutable(self):
        cid = ComponentId("s", "a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            cid.version = "1"  # type: ignore[misc]


class TestVersionKey:
    def test_numeric_ordering(self):
        assert version_key("0.0.10") > version_key("0.0.9")
        assert version_key("1.0.0") > version_key("0.9.9")

    def test_sort(self):
        assert sorted(["0.0.2", "0.0.10", "0.0.1"], key=version_key) == [
            "0.0.1",
            "0.0.2",
            "0.0.10",
        ]


class TestContentHash:
    def test_order_independent(self):
        assert content_hash({"a.js": "1", "b.js": "2"}) == content_hash({"b.js": "2", "a.js": "1"})

    def test_content_sensitive(self):
        assert content_hash({"a.js": "1"}) != content_hash({"a.js": "2"})

    def test_path_sensitive(self):
        assert content_hash({"a.js": "1"}) != content_hash({"b.js": "1"})

    def test_missing_differs_from_empty(self):
        assert content_hash({"a.js": None}) != content_hash({"a.js": ""})


class TestComponentObject:
    def test_requires_version(self):
        with pytest.raises(ConfigurationError):
            ComponentObject(id=ComponentId("s", "a"), files={"a.js": ""})

    def test_hash_matches_files(self, make_object):
        obj = make_object("remote/foo@1.0.0", files={"foo.js": "x"})
        assert obj.content_hash == content_hash({"foo.js": "x"})

    def test_files_are_read_only(self, make_object):
        obj = make_object("remote/foo@1.0.0")
        with pytest.raises(TypeError):
            obj.files["evil.js"] = "x"  # type: ignore[index]

    def test_source_mapping_is_copied(self):
        files = {"a.js": "1"}
        obj = ComponentObject(id=ComponentId("s", "a", "1"), files=files)
        files["a.js"] = "2"
        assert obj.files["a.js"] == "1"

    def test_environment_ids(self, make_object):
        obj = make_object("remote/foo@1.0.0", compiler="envs/babel@1.0.0")
        assert obj.environment_ids == (ComponentId("envs", "babel", "1.0.0"),)


class TestResults:
    def test_closure_is_requested(self, make_object):
        foo = make_object("remote/foo@1.0.0")
        dep = make_object("remote/dep@1.0.0")
        closure = ResolvedClosure(primary=(foo, dep), requested=(ComponentId("remote", "foo"),))
        assert closure.is_requested(foo)
        assert not closure.is_requested(dep)

    def test_nothing_to_import(self):
        assert ImportResult().nothing_to_import

    def test_imported_vs_dependencies(self):
        a = ImportDetails(ComponentId("s", "a", "1"), "1", "imported")
        b = ImportDetails(ComponentId("s", "b", "1"), "1", "imported", dependency=True)
        result = ImportResult(details=(a, b))
        assert result.imported == (a,)
        assert result.dependencies == (b,)

    def test_audit_flags(self):
        assert DependencyAuditResult().is_clean
        assert DependencyAuditResult(missing_everywhere=(("x", "1"),)).has_errors
