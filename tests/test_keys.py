"""Tests for unstable list keys."""

import pytest

from hookloop.models import Category, Confidence, Severity


def _list(key_expression: str, params: str = "item") -> str:
    return f"""
    function List({{ items }}) {{
      return <ul>{{items.map(({params}) => <li key={{{key_expression}}}>{{item.name}}</li>)}}</ul>;
    }}
    """


@pytest.mark.parametrize(
    "key_expression",
    [
        "Math.random()",
        "crypto.randomUUID()",
        "nanoid()",
        "`row-${Date.now()}`",
        "'row-' + uuid.v4()",
        "new Date().getTime()",
        "{ id: item.id }",
    ],
)
def test_random_or_inline_keys_are_reported(analyze_source, key_expression):
    (finding,) = analyze_source(_list(key_expression), name="List.jsx")
    assert finding.error_code == "RLD-408"
    assert finding.category == Category.WARNING
    assert finding.severity == Severity.MEDIUM
    assert finding.confidence == Confidence.HIGH
    assert finding.hook_type == "key-prop"


def test_stable_keys_are_not_reported(analyze_source):
    assert analyze_source(_list("item.id"), name="List.jsx") == []
    assert analyze_source(_list("`item-${item.id}`"), name="List.jsx") == []


def test_string_key_is_not_reported(analyze_source):
    source = """
    function Header() {
      return <div key="header">title</div>;
    }
    """
    assert analyze_source(source) == []


def test_random_binding_used_as_key(analyze_source):
    (finding,) = analyze_source(
        """
        function Row({ label }) {
          const rowId = uuid();
          return <div key={rowId}>{label}</div>;
        }
        """
    )
    assert finding.error_code == "RLD-408"
    assert finding.confidence == Confidence.MEDIUM
    assert finding.problematic_dependency == "rowId"


def test_index_key_only_reported_when_enabled(analyze_source):
    source = _list("index", params="item, index")
    assert analyze_source(source, name="List.jsx") == []

    (finding,) = analyze_source(source, name="List.jsx", warn_on_index_key=True)
    assert finding.error_code == "RLD-409"
    assert finding.category == Category.PERFORMANCE
    assert finding.severity == Severity.LOW
    assert finding.confidence == Confidence.MEDIUM
