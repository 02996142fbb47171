import string

import pytest

from httpscaler.naming import NamespacedName, escape_string, metric_name

_SAFE = set(string.ascii_letters + string.digits + "-._")


def test_namespaced_name_str():
    assert str(NamespacedName("default", "app")) == "default/app"


def test_metric_name_escapes_slash():
    assert metric_name(NamespacedName("default", "app")) == "http-default_002Fapp"


@pytest.mark.parametrize("safe", ["abc", "A-b.9", "", "---..."])
def test_safe_strings_unchanged(safe):
    assert escape_string(safe) == safe


def test_multibyte_character_uses_all_bytes():
    assert escape_string("é") == "_C3A9"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("a b", "a_0020b"),
        ("x/y_z", "x_002Fy_005Fz"),
        ("ü:1", "_C3BC_003A1"),
        ("hello world!", "hello_0020world_0021"),
        ("Test/Case #0", "Test_002FCase_0020_00230"),
    ],
)
def test_escaped_output_only_safe_characters(text, expected):
    out = escape_string(text)
    assert out == expected
    assert set(out) <= _SAFE


def test_each_ascii_escape_has_fixed_width():
    out = escape_string("a b")
    assert out.startswith("a_")
    assert out.endswith("b")
    assert len(out) == len("a") + 5 + len("b")


def test_metric_name_distinct_for_distinct_objects():
    first = metric_name(NamespacedName("ns", "one"))
    second = metric_name(NamespacedName("ns", "two"))
    assert first == "http-ns_002Fone"
    assert second == "http-ns_002Ftwo"