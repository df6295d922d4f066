"""Tests for tplenv_lib.resolver: precedence rules between environment, values file and prompts."""

import io
import logging

import pytest
import yaml

from tplenv_lib.errors import MissingValueError, StructuralConflictError
from tplenv_lib.prompts import PromptController
from tplenv_lib.resolver import (
    SOURCE_ENVIRONMENT,
    SOURCE_PROMPT,
    SOURCE_VALUES_FILE,
    RenderOptions,
    Resolver,
)
from tplenv_lib.scanner import PlaceholderKind, scan
from tplenv_lib.values import ValuesStore


def _make(tmp_path, data=None, inputs="", environ=None, **options):
    store = ValuesStore(tmp_path / "Values.yaml", data)
    out = io.StringIO()
    prompter = PromptController(io.StringIO(inputs), out, context=False)
    resolver = Resolver(store, prompter, RenderOptions(**options), environ or {})
    return resolver, store, out


def _env(name):
    return (PlaceholderKind.ENV, name)


def _values(path):
    return (PlaceholderKind.VALUES, path)


class TestValuesRefs:
    def test_present_value_used_without_prompt(self, tmp_path):
        resolver, _, out = _make(tmp_path, {"image": {"tag": "1.0.0"}})
        values = resolver.resolve(scan("image: {{ .Values.image.tag }}"))
        assert values[_values("image.tag")] == "1.0.0"
        assert resolver.sources[_values("image.tag")] == SOURCE_VALUES_FILE
        assert out.getvalue() == ""

    def test_missing_without_create_is_reported(self, tmp_path):
        resolver, _, _ = _make(tmp_path, {})
        resolver.resolve(scan("a: {{ .Values.a.b }}\nc: {{ .Values.c }}\n", source="t.yaml"))
        with pytest.raises(MissingValueError) as exc:
            resolver.check_complete()
        message = str(exc.value)
        assert ".Values.a.b" in message
        assert "t.yaml:1" in message
        assert ".Values.c" in message
        assert "t.yaml:2" in message
        assert len(exc.value.missing) == 2

    def test_missing_with_create_prompts_and_stores(self, tmp_path):
        resolver, store, _ = _make(tmp_path, {}, inputs="X\n", create_values_file=True)
        values = resolver.resolve(scan("{{ .Values.a.b }}"))
        assert values[_values("a.b")] == "X"
        assert resolver.sources[_values("a.b")] == SOURCE_PROMPT
        assert store.data == {"a": {"b": "X"}}

    def test_force_prompts_with_existing_default(self, tmp_path):
        resolver, store, out = _make(
            tmp_path, {"image": {"tag": "1.0.0"}}, inputs="2.0.0\n", create_values_file=True, force=True
        )
        values = resolver.resolve(scan("{{ .Values.image.tag }}"))
        assert values[_values("image.tag")] == "2.0.0"
        assert "[1.0.0]" in out.getvalue()
        assert store.get("image.tag") == "2.0.0"

    def test_force_empty_input_keeps_existing(self, tmp_path):
        resolver, store, _ = _make(
            tmp_path, {"replicas": 3}, inputs="\n", create_values_file=True, force=True
        )
        values = resolver.resolve(scan("{{ .Values.replicas }}"))
        assert values[_values("replicas")] == "3"
        assert store.data["replicas"] == 3
        assert not store.dirty

    def test_force_empty_input_keeps_existing_mapping(self, tmp_path):
        resolver, store, out = _make(
            tmp_path,
            {"image": {"repository": "nginx", "tag": "1.0"}},
            inputs="\n",
            create_values_file=True,
            force=True,
        )
        values = resolver.resolve(scan("img: {{ .Values.image }}"))
        assert values[_values("image")] == "repository: nginx\ntag: '1.0'"
        assert store.data == {"image": {"repository": "nginx", "tag": "1.0"}}
        assert not store.dirty
        assert "Enter value for values file key image" in out.getvalue()

    def test_structural_conflict_propagates(self, tmp_path):
        resolver, _, _ = _make(tmp_path, {"image": "nginx"})
        with pytest.raises(StructuralConflictError):
            resolver.resolve(scan("{{ .Values.image.tag }}"))


class TestEnvRefsNormalMode:
    def test_os_environment_used_verbatim(self, tmp_path):
        resolver, store, _ = _make(tmp_path, {}, environ={"APP_NAME": "  spaced value  "})
        values = resolver.resolve(scan("{{APP_NAME}}"))
        assert values[_env("APP_NAME")] == "  spaced value  "
        assert resolver.sources[_env("APP_NAME")] == SOURCE_ENVIRONMENT
        assert not store.dirty

    def test_unset_variable_becomes_empty_with_warning(self, tmp_path, caplog):
        resolver, _, out = _make(tmp_path, {})
        with caplog.at_level(logging.WARNING, logger="tplenv_lib.resolver"):
            values = resolver.resolve(scan("name: $MISSING_VAR", source="t.yaml"))
        assert values[_env("MISSING_VAR")] == ""
        assert "MISSING_VAR" in caplog.text
        assert out.getvalue() == ""
        resolver.check_complete()

    def test_unset_variable_with_create_prompts(self, tmp_path):
        resolver, store, out = _make(tmp_path, {}, inputs="demo\n", create_values_file=True)
        values = resolver.resolve(scan("{{APP_NAME}}"))
        assert values[_env("APP_NAME")] == "demo"
        assert "environment.APP_NAME" in out.getvalue()
        assert store.data == {"environment": {"APP_NAME": "demo"}}

    def test_unset_variable_with_create_uses_stored_value(self, tmp_path):
        resolver, _, out = _make(
            tmp_path, {"environment": {"APP_NAME": "stored"}}, create_values_file=True
        )
        values = resolver.resolve(scan("{{APP_NAME}}"))
        assert values[_env("APP_NAME")] == "stored"
        assert out.getvalue() == ""

    def test_create_captures_environment_into_values_file(self, tmp_path):
        resolver, store, out = _make(
            tmp_path, {}, environ={"NAMESPACE": "dev"}, create_values_file=True
        )
        resolver.resolve(scan("{{NAMESPACE}}"))
        assert store.data == {"environment": {"NAMESPACE": "dev"}}
        assert out.getvalue() == ""
        assert resolver.prompter.records == []

    def test_os_environment_wins_over_stored_value(self, tmp_path):
        resolver, store, _ = _make(
            tmp_path,
            {"environment": {"NAMESPACE": "stored"}},
            environ={"NAMESPACE": "from-os"},
            create_values_file=True,
        )
        values = resolver.resolve(scan("{{NAMESPACE}}"))
        assert values[_env("NAMESPACE")] == "from-os"
        assert store.get("environment.NAMESPACE") == "stored"
        assert not store.dirty


class TestEnvRefsValueFileOnly:
    def test_stored_value_wins_over_os_environment(self, tmp_path):
        resolver, _, _ = _make(
            tmp_path,
            {"environment": {"REGION": "eu-central-1"}},
            environ={"REGION": "us-east-1"},
            value_file_only=True,
            create_values_file=True,
        )
        values = resolver.resolve(scan("{{REGION}}"))
        assert values[_env("REGION")] == "eu-central-1"
        assert resolver.sources[_env("REGION")] == SOURCE_VALUES_FILE

    def test_os_environment_ignored_without_create(self, tmp_path):
        resolver, _, _ = _make(tmp_path, {}, environ={"REGION": "us-east-1"}, value_file_only=True)
        resolver.resolve(scan("{{REGION}}", source="t.yaml"))
        with pytest.raises(MissingValueError, match="environment.REGION"):
            resolver.check_complete()

    def test_create_falls_back_to_os_environment(self, tmp_path):
        resolver, store, out = _make(
            tmp_path, {}, environ={"REGION": "us-east-1"}, value_file_only=True, create_values_file=True
        )
        values = resolver.resolve(scan("{{REGION}}"))
        assert values[_env("REGION")] == "us-east-1"
        assert store.get("environment.REGION") == "us-east-1"
        assert out.getvalue() == ""

    def test_create_prompts_when_nothing_known(self, tmp_path):
        resolver, store, _ = _make(
            tmp_path, {}, inputs="\n", value_file_only=True, create_values_file=True
        )
        values = resolver.resolve(scan("{{REGION}}"))
        assert values[_env("REGION")] == ""
        assert store.data == {"environment": {"REGION": ""}}

    def test_force_empty_input_keeps_old_value(self, tmp_path):
        path = tmp_path / "Values.yaml"
        path.write_text("environment:\n  APP_NAME: old\n")
        store = ValuesStore.load(path)
        prompter = PromptController(io.StringIO("\n"), io.StringIO())
        resolver = Resolver(
            store,
            prompter,
            RenderOptions(value_file_only=True, create_values_file=True, force=True),
            {},
        )
        values = resolver.resolve(scan("{{APP_NAME}}"))
        store.persist()

        assert values[_env("APP_NAME")] == "old"
        assert yaml.safe_load(path.read_text()) == {"environment": {"APP_NAME": "old"}}
        assert [r.path for r in prompter.records] == ["environment.APP_NAME"]

    def test_force_offers_os_environment_as_default(self, tmp_path):
        resolver, _, out = _make(
            tmp_path,
            {},
            inputs="\n",
            environ={"REGION": "us-east-1"},
            value_file_only=True,
            create_values_file=True,
            force=True,
        )
        values = resolver.resolve(scan("{{REGION}}"))
        assert "[us-east-1]" in out.getvalue()
        assert values[_env("REGION")] == "us-east-1"


class TestDeduplication:
    def test_request_resolved_once_across_calls(self, tmp_path):
        resolver, _, out = _make(tmp_path, {}, inputs="shared\n", create_values_file=True)
        resolver.resolve(scan("a: {{ .Values.name }}", source="one.yaml"))
        resolver.resolve(scan("b: {{ .Values.name }}", source="two.yaml"))
        assert out.getvalue().count("Enter value") == 1
        assert resolver.values[_values("name")] == "shared"

    def test_env_and_values_ref_to_same_key_prompt_once(self, tmp_path):
        resolver, _, out = _make(
            tmp_path, {}, inputs="demo\n", value_file_only=True, create_values_file=True, force=True
        )
        values = resolver.resolve(scan("{{APP_NAME}} {{ .Values.environment.APP_NAME }}"))
        assert out.getvalue().count("Enter value") == 1
        assert values[_env("APP_NAME")] == "demo"
        assert values[_values("environment.APP_NAME")] == "demo"

    def test_prompts_follow_first_occurrence_order(self, tmp_path):
        resolver, _, _ = _make(tmp_path, {}, inputs="1\n2\n3\n", create_values_file=True)
        resolver.resolve(scan("{{ .Values.z }} {{ .Values.a }} {{ .Values.z }} {{ .Values.m }}"))
        assert [r.path for r in resolver.prompter.records] == ["z", "a", "m"]


class TestVerbose:
    def test_every_resolution_is_logged_with_source(self, tmp_path, caplog):
        resolver, _, _ = _make(tmp_path, {"image": {"tag": "1.0.0"}}, environ={"NS": "dev"})
        with caplog.at_level(logging.INFO, logger="tplenv_lib.resolver"):
            resolver.resolve(scan("{{ .Values.image.tag }} {{NS}}"))
        assert "set .Values.image.tag = 1.0.0 (values file)" in caplog.text
        assert "set environment.NS = dev (environment)" in caplog.text
