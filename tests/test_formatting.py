import datetime
import unittest
from dataclasses import dataclass

from callprobe.formatting import (
    CIRCULAR,
    ELLIPSIS,
    MISSING,
    format_args,
    format_error,
    format_value,
)


def sample_helper():
    return None


@dataclass
class Point:
    x: int
    y: int


class _Opaque:
    __slots__ = ()

    def __repr__(self):
        raise RuntimeError("no repr for you")


class FormatValueTests(unittest.TestCase):
    def test_missing_and_none(self):
        self.assertEqual(format_value(MISSING), "")
        self.assertEqual(format_value(None), "None")

    def test_primitives(self):
        self.assertEqual(format_value("hello"), "hello")
        self.assertEqual(format_value(42), "42")
        self.assertEqual(format_value(2.5), "2.5")
        self.assertEqual(format_value(True), "True")

    def test_long_string_truncated_with_ellipsis(self):
        text = "x" * 1500
        out = format_value(text, max_length=1000)
        self.assertEqual(len(out), 1000 + len(ELLIPSIS))
        self.assertTrue(out.endswith(ELLIPSIS))

    def test_containers_serialize_as_json(self):
        self.assertEqual(format_value({"a": 1, "b": [1, 2]}), '{"a": 1, "b": [1, 2]}')
        self.assertEqual(format_value((1, "two")), '[1, "two"]')
        self.assertEqual(format_value(Point(1, 2)), '{"x": 1, "y": 2}')

    def test_non_json_types_are_tagged(self):
        self.assertEqual(format_value(b"abc"), '{"__type": "bytes", "length": 3}')
        self.assertEqual(
            format_value({"when": datetime.date(2024, 1, 2)}),
            '{"when": "2024-01-02"}',
        )
        self.assertIn("ValueError", format_value([ValueError("bad")]))
        self.assertEqual(format_value(sample_helper), "[Function sample_helper]")

    def test_self_referential_object_never_raises(self):
        node = {"name": "root"}
        node["self"] = node
        out = format_value(node, max_length=50)
        self.assertIn(CIRCULAR, out)
        self.assertLessEqual(len(out), 50 + len(ELLIPSIS))

    def test_shared_reference_is_not_circular(self):
        shared = [1]
        self.assertEqual(format_value({"a": shared, "b": shared}), '{"a": [1], "b": [1]}')

    def test_unrepresentable_value_degrades_to_summary(self):
        self.assertEqual(format_value(_Opaque()), "<_Opaque>")

    def test_plain_object_uses_attributes(self):
        class Box:
            def __init__(self):
                self.size = 3

        self.assertEqual(format_value(Box()), '{"__type": "Box", "size": 3}')


class FormatArgsTests(unittest.TestCase):
    def test_caps_argument_count(self):
        out = format_args(range(15), max_args=10)
        self.assertEqual(out, [str(i) for i in range(10)])

    def test_keyword_arguments_follow_positionals(self):
        out = format_args((1,), {"mode": "fast", "retries": 2})
        self.assertEqual(out, ["1", "mode=fast", "retries=2"])

    def test_keywords_share_the_cap(self):
        out = format_args((1, 2), {"a": 3, "b": 4}, max_args=3)
        self.assertEqual(out, ["1", "2", "a=3"])


class FormatErrorTests(unittest.TestCase):
    def test_exception_message(self):
        self.assertEqual(format_error(ValueError("boom")), "boom")

    def test_exception_without_message_uses_type(self):
        self.assertEqual(format_error(KeyboardInterrupt()), "KeyboardInterrupt")

    def test_non_exception_error(self):
        self.assertEqual(format_error("plain failure"), "plain failure")


if __name__ == "__main__":
    unittest.main()
