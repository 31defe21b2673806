"""Tests for the Go template engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

import pytest

from alert_receivers.templates.engine import (
    MAX_EXEC_DEPTH,
    Templates,
    TemplateError,
    attribute_name,
    format_float,
    to_text,
)


@dataclass
class Item:
    _template_fields: ClassVar[frozenset[str]] = frozenset(
        {"Name", "Tags", "GeneratorURL", "Shout"}
    )

    name: str
    tags: list[str] = field(default_factory=list)
    generator_url: str = ""

    def shout(self, suffix: str = "!") -> str:
        return self.name.upper() + suffix


@pytest.fixture
def templates() -> Templates:
    return Templates()


def render(templates: Templates, text: str, data: object = None) -> str:
    return templates.execute_text(text, data)


# ============================================================================
# Helper Tests
# ============================================================================


class TestAttributeName:
    """Tests for Go field name to attribute mapping."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Alerts", "alerts"),
            ("SortedPairs", "sorted_pairs"),
            ("GeneratorURL", "generator_url"),
            ("ExternalURL", "external_url"),
            ("NotAField", "not_a_field"),
        ],
    )
    def test_attribute_name(self, name: str, expected: str) -> None:
        assert attribute_name(name) == expected


class TestFormatFloat:
    """Tests for Go-compatible float formatting."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1234.0, "1234"),
            (0.5, "0.5"),
            (-2.25, "-2.25"),
            (0.0, "0"),
            (1234567.0, "1.234567e+06"),
            (0.00001, "1e-05"),
            (0.0001, "0.0001"),
            (float("inf"), "+Inf"),
        ],
    )
    def test_format_float(self, value: float, expected: str) -> None:
        assert format_float(value) == expected

    def test_to_text(self) -> None:
        """Test printing of common value types."""
        assert to_text(None) == ""
        assert to_text(True) == "true"
        assert to_text(["a", "b"]) == "[a b]"
        assert to_text({"b": 2, "a": 1}) == "map[a:1 b:2]"


# ============================================================================
# Action Tests
# ============================================================================


class TestActions:
    """Tests for text, fields and pipelines."""

    def test_plain_text(self, templates: Templates) -> None:
        assert render(templates, "customMessage") == "customMessage"

    def test_field_lookup_on_mapping(self, templates: Templates) -> None:
        assert render(templates, "Hello {{ .Name }}", {"Name": "world"}) == "Hello world"

    def test_field_lookup_on_object(self, templates: Templates) -> None:
        item = Item(name="disk", generator_url="http://x")
        assert render(templates, "{{ .Name }} {{ .GeneratorURL }}", item) == "disk http://x"

    def test_undefined_field_renders_empty(self, templates: Templates) -> None:
        """Test undefined fields resolve to the empty string."""
        out = render(templates, "a {{ .NotAField }} b {{ .Missing.Deeper }} c", Item("x"))
        assert out == "a  b  c"

    def test_method_call_with_args(self, templates: Templates) -> None:
        assert render(templates, '{{ .Shout "?" }}', Item("disk")) == "DISK?"

    def test_method_call_without_args(self, templates: Templates) -> None:
        assert render(templates, "{{ .Shout }}", Item("disk")) == "DISK!"

    def test_pipeline(self, templates: Templates) -> None:
        assert render(templates, "{{ .Name | toUpper }}", {"Name": "firing"}) == "FIRING"

    def test_len_function_and_pipe(self, templates: Templates) -> None:
        data = {"Items": [1, 2, 3]}
        assert render(templates, "{{ len .Items }}/{{ .Items | len }}", data) == "3/3"

    def test_parenthesised_pipeline(self, templates: Templates) -> None:
        data = {"Items": [1, 2]}
        assert render(templates, "{{ if gt (len .Items) 1 }}many{{ end }}", data) == "many"

    def test_trim_markers(self, templates: Templates) -> None:
        assert render(templates, "a  {{- .X -}}  \n b", {"X": "-"}) == "a-b"

    def test_comment(self, templates: Templates) -> None:
        assert render(templates, "a{{/* ignored */}}b{{- /* trimmed */ -}} c") == "abc"

    def test_string_escapes(self, templates: Templates) -> None:
        assert render(templates, '{{ "a\\tb" }}|{{ `raw\\n` }}') == "a\tb|raw\\n"

    def test_printf(self, templates: Templates) -> None:
        out = render(templates, '{{ printf "%s=%d (%q)" "a" 3 "b" }}')
        assert out == 'a=3 ("b")'

    def test_join_and_title(self, templates: Templates) -> None:
        data = {"Parts": ["disk full", "cpu high"]}
        assert render(templates, '{{ .Parts | join ", " | title }}', data) == "Disk Full, Cpu High"

    def test_re_replace_all(self, templates: Templates) -> None:
        out = render(templates, '{{ reReplaceAll "(a+)b" "[$1]" "aab xb" }}')
        assert out == "[aa] xb"


# ============================================================================
# Control Structure Tests
# ============================================================================


class TestControl:
    """Tests for if, range, with and variables."""

    def test_if_else_if(self, templates: Templates) -> None:
        text = '{{ if eq .S "a" }}A{{ else if eq .S "b" }}B{{ else }}other{{ end }}'
        assert render(templates, text, {"S": "a"}) == "A"
        assert render(templates, text, {"S": "b"}) == "B"
        assert render(templates, text, {"S": "c"}) == "other"

    def test_eq_matches_any_argument(self, templates: Templates) -> None:
        assert render(templates, '{{ eq .S "x" "y" }}', {"S": "y"}) == "true"

    def test_range_list(self, templates: Templates) -> None:
        assert render(templates, "{{ range .L }}<{{ . }}>{{ end }}", {"L": ["a", "b"]}) == "<a><b>"

    def test_range_map_is_sorted(self, templates: Templates) -> None:
        text = "{{ range $k, $v := .M }}{{ $k }}={{ $v }};{{ end }}"
        assert render(templates, text, {"M": {"b": 2, "a": 1}}) == "a=1;b=2;"

    def test_range_else(self, templates: Templates) -> None:
        assert render(templates, "{{ range .L }}x{{ else }}empty{{ end }}", {"L": []}) == "empty"

    def test_with(self, templates: Templates) -> None:
        text = "{{ with .Inner }}{{ .Name }}{{ else }}none{{ end }}"
        assert render(templates, text, {"Inner": {"Name": "n"}}) == "n"
        assert render(templates, text, {"Inner": None}) == "none"

    def test_variable_assignment_in_range(self, templates: Templates) -> None:
        text = (
            "{{ $first := true }}{{ range .L }}"
            "{{ if $first }}{{ $first = false }}{{ else }}, {{ end }}{{ . }}{{ end }}"
        )
        assert render(templates, text, {"L": ["a", "b", "c"]}) == "a, b, c"

    def test_root_variable(self, templates: Templates) -> None:
        text = "{{ range .L }}{{ $.Prefix }}{{ . }} {{ end }}"
        assert render(templates, text, {"L": [1, 2], "Prefix": "#"}) == "#1 #2 "

    def test_define_and_template(self, templates: Templates) -> None:
        templates.parse('{{ define "greet" }}Hello {{ .Name }}{{ end }}')
        assert render(templates, '{{ template "greet" . }}!', {"Name": "you"}) == "Hello you!"
        assert templates.execute("greet", {"Name": "me"}) == "Hello me"

    def test_local_define_is_not_registered(self, templates: Templates) -> None:
        """Test definitions inside a rendered text stay local to it."""
        text = '{{ define "x" }}X{{ end }}{{ template "x" }}'
        assert render(templates, text) == "X"
        assert not templates.lookup("x")

    def test_block(self, templates: Templates) -> None:
        assert render(templates, '{{ block "b" . }}[{{ . }}]{{ end }}', "v") == "[v]"


# ============================================================================
# Error Tests
# ============================================================================


class TestErrors:
    """Tests for malformed templates."""

    @pytest.mark.parametrize(
        "text",
        [
            "{{ .Name ",
            "{{ if .X }}no end",
            "{{ end }}",
            "{{ nosuch .X }}",
            '{{ template "missing" . }}',
            '{{ "unterminated }}',
            "{{ }}",
            "{{ $undefined }}",
        ],
    )
    def test_malformed_template_raises(self, templates: Templates, text: str) -> None:
        with pytest.raises(TemplateError):
            render(templates, text, {"X": 1, "Name": "n"})

    def test_incompatible_comparison(self, templates: Templates) -> None:
        with pytest.raises(TemplateError, match="incompatible types"):
            render(templates, '{{ gt 1 "a" }}')

    def test_recursive_template_raises(self, templates: Templates) -> None:
        """Test runaway template recursion fails as a template error."""
        text = '{{ define "a" }}{{ template "a" . }}{{ end }}{{ template "a" . }}'
        with pytest.raises(TemplateError, match="exceeded maximum template depth"):
            render(templates, text)

    def test_nesting_within_depth_limit(self, templates: Templates) -> None:
        """Test a chain of nested templates just under the limit renders."""
        templates.parse('{{ define "t0" }}ok{{ end }}')
        for i in range(1, MAX_EXEC_DEPTH):
            templates.parse(f'{{{{ define "t{i}" }}}}{{{{ template "t{i - 1}" }}}}{{{{ end }}}}')

        assert render(templates, f'{{{{ template "t{MAX_EXEC_DEPTH - 1}" }}}}') == "ok"


# ============================================================================
# Exported Field Tests
# ============================================================================


class TestExportedFields:
    """Tests for which names templates can reach on data values."""

    @pytest.mark.parametrize(
        "text",
        [
            "{{ .Tags.Clear }}",
            "{{ .Tags.Pop }}",
            "{{ .Tags.Reverse }}",
            "{{ .Tags.Append }}",
            "{{ .Name.Upper }}",
            "{{ .Shout.Mro }}",
        ],
    )
    def test_python_methods_are_not_exported(self, templates: Templates, text: str) -> None:
        """Test list, str and function members render empty."""
        item = Item(name="disk", tags=["b", "a"])
        assert render(templates, text, item) == ""
        assert item.tags == ["b", "a"]

    def test_unexported_attribute_renders_empty(self, templates: Templates) -> None:
        assert render(templates, "[{{ .Shout }}][{{ .Dict }}]", Item("disk")) == "[DISK!][]"

    def test_mapping_methods_are_not_exported(self, templates: Templates) -> None:
        """Test mapping lookups read keys, never dict methods."""
        data = {"Labels": {"values": "v"}}
        out = render(templates, "{{ .Labels.values }}|{{ .Labels.keys }}|{{ .Labels.Clear }}", data)
        assert out == "v||"
        assert data == {"Labels": {"values": "v"}}

    def test_rendering_leaves_data_unchanged(self, templates: Templates) -> None:
        """Test one render cannot change what the next render sees."""
        item = Item(name="disk", tags=["b", "a"])

        render(templates, "{{ .Tags.Clear }}{{ .Tags.Sort }}{{ .Tags.Pop }}", item)

        assert render(templates, "{{ len .Tags }} {{ .Tags }}", item) == "2 [b a]"
