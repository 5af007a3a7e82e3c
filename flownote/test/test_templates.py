import ast

import pytest

from flownote.compiler.templates import (
    CodeWriter,
    format_value,
    is_bare_identifier,
    raw_value,
    resolve_filepath,
)


class TestFormatValue:

    def test_null_and_booleans(self):
        assert format_value(None) == "None"
        assert format_value(True) == "True"
        assert format_value(False) == "False"

    def test_numbers_unquoted(self):
        assert format_value(3) == "3"
        assert format_value(0.25) == "0.25"
        assert format_value(-7) == "-7"

    def test_lists_quote_string_elements(self):
        assert format_value(["a", "b c", 1, True, None]) == "['a', 'b c', 1, True, None]"
        assert format_value([]) == "[]"

    def test_dicts_quote_keys_and_string_values(self):
        assert format_value({"old": "new", "n": 2}) == "{'old': 'new', 'n': 2}"

    def test_bare_identifier_is_a_reference(self):
        assert format_value("n01_df_out") == "n01_df_out"
        assert format_value("_private") == "_private"

    def test_other_strings_single_quoted(self):
        assert format_value("hello world") == "'hello world'"
        assert format_value("1abc") == "'1abc'"
        assert format_value("") == "''"
        assert format_value("a.csv") == "'a.csv'"

    def test_embedded_quote_escaped(self):
        assert format_value("it's") == "'it\\'s'"

    def test_identifier_pattern(self):
        assert is_bare_identifier("abc_1")
        assert not is_bare_identifier("1abc")
        assert not is_bare_identifier("a-b")
        assert not is_bare_identifier(None)
        assert not is_bare_identifier(5)
        assert not is_bare_identifier("df\n")

    @pytest.mark.parametrize("text", [
        "C:\\temp\\",
        "C:\\temp",
        "line one\nline two",
        "tab\there",
        "it's \"quoted\"",
        "bell\x07",
        "df\n",
    ])
    def test_strings_evaluate_back_to_themselves(self, text):
        rendered = format_value(text)
        assert "\n" not in rendered
        assert ast.literal_eval(rendered) == text

    def test_container_strings_escaped(self):
        assert ast.literal_eval(format_value(["a\\b", "x\ny"])) == ["a\\b", "x\ny"]
        assert ast.literal_eval(format_value({"k": "v\\"})) == {"k": "v\\"}


class TestFilepath:

    def test_relative_path_joined_under_dataset(self):
        """data/foo.csv against /srv resolves to /srv/dataset/data/foo.csv."""
        assert format_value("data/foo.csv", "filepath", "/srv") == "'/srv/dataset/data/foo.csv'"

    def test_trailing_separator_on_root(self):
        assert resolve_filepath("foo.csv", "/srv/") == "/srv/dataset/foo.csv"

    def test_dataset_prefix_not_doubled(self):
        assert resolve_filepath("dataset/foo.csv", "/srv") == "/srv/dataset/foo.csv"

    def test_backslashes_normalised(self):
        assert resolve_filepath("sub\\b.csv", "/srv") == "/srv/dataset/sub/b.csv"

    def test_absolute_path_kept(self):
        assert resolve_filepath("/data/x.csv", "/srv") == "/data/x.csv"

    def test_without_root(self):
        assert resolve_filepath("foo.csv") == "dataset/foo.csv"

    def test_windows_root_escapes_backslashes(self):
        assert resolve_filepath("a.csv", "C:\\work") == "C:\\\\work\\\\dataset\\\\a.csv"

    def test_windows_path_literal_not_escaped_twice(self):
        rendered = format_value("a.csv", "filepath", "C:\\work")
        assert ast.literal_eval(rendered) == "C:\\work\\dataset\\a.csv"

    def test_empty_filepath(self):
        assert format_value("", "filepath", "/srv") == "''"
        assert format_value("   ", "filepath", "/srv") == "''"

    def test_identifier_like_filepath_still_quoted(self):
        assert format_value("sales", "filepath", "/srv") == "'/srv/dataset/sales'"


class TestRawValue:

    def test_strings_go_in_unquoted(self):
        assert raw_value("abc def") == "abc def"
        assert raw_value(5) == "5"

    def test_literals(self):
        assert raw_value(None) == "None"
        assert raw_value(True) == "True"
        assert raw_value([1, "a"]) == "[1, 'a']"

    def test_filepath_resolved_without_quotes(self):
        assert raw_value("a.csv", "filepath", "/srv") == "/srv/dataset/a.csv"


class TestCodeWriter:

    def test_try_except_block(self):
        w = CodeWriter()
        w.assign("x", "f()")
        w.try_except(["display(x.head())"], ["print(x)"])
        assert w.result() == (
            "x = f()\n"
            "try:\n"
            "    display(x.head())\n"
            "except Exception:\n"
            "    print(x)"
        )

    def test_comment_and_blank(self):
        w = CodeWriter()
        w.comment("Step").blank().call("f", ["a=1", "b=2"])
        assert w.lines() == ["# Step", "", "f(a=1, b=2)"]
