"""
Tests for pattern compilation, regex safety and match helpers.
"""

import pytest

from mountfs.filesystem import PatternError, UnsafeRegexError
from mountfs.filesystem.lines import LineRange
from mountfs.filesystem.patterns import (
    MultipleMatches,
    NoMatch,
    UniqueMatch,
    cluster_matches,
    compile_pattern,
    compile_preset,
    find_matches,
    find_unique_match,
    get_line_bounds,
    get_line_number,
    is_preset,
    is_unsafe_regex,
    match_line_range,
    normalize_whitespace,
    replace_all_matches,
)

NOTE = """---
title: Note
---
# Heading
Some text with #tag and #other/tag but not a#b.
- [ ] open task
- [x] done task
See [[Other Page|alias]] and [[Plain]].
```python
print("code")
```
"""


class TestRegexSafety:
    """Test the static regex screen."""

    @pytest.mark.parametrize("pattern", ["(a+)+b", "(a*)*", "(x+y+)+", "(?:a|b+)*", "a{2,}*", "(a{1,5})+"])
    def test_unsafe(self, pattern):
        """Test patterns that can backtrack catastrophically."""
        assert is_unsafe_regex(pattern)

    @pytest.mark.parametrize("pattern", ["a+b", "(ab)+", "\\(a+\\)+", "[(a+)]+", "(a?)+", "^\\s*-\\s*\\[ \\]"])
    def test_safe(self, pattern):
        """Test ordinary patterns."""
        assert not is_unsafe_regex(pattern)

    def test_too_many_alternations(self):
        """Test the alternation limit."""
        assert is_unsafe_regex("|".join(["a"] * 52))
        assert not is_unsafe_regex("|".join(["a"] * 10))

    def test_too_long(self):
        """Test the length limit."""
        assert is_unsafe_regex("a" * 1001)

    def test_compile_rejects_unsafe(self):
        """Test that regex mode applies the screen."""
        with pytest.raises(UnsafeRegexError) as exc:
            compile_pattern("(a+)+b", "regex")
        assert exc.value.code == "UNSAFE_REGEX"

    def test_literal_mode_skips_screen(self):
        """Test that literal patterns are escaped, not screened."""
        matcher = compile_pattern("(a+)+b", "literal")
        assert matcher.search("x(a+)+b") is not None


class TestCompilePattern:
    """Test compile_pattern."""

    def test_empty_pattern(self):
        """Test that an empty pattern fails."""
        with pytest.raises(PatternError):
            compile_pattern("")

    def test_invalid_regex(self):
        """Test that a syntax error becomes PatternError."""
        with pytest.raises(PatternError) as exc:
            compile_pattern("(unclosed", "regex")
        assert exc.value.code == "INVALID_PATTERN"

    def test_literal_escapes(self):
        """Test that metacharacters match literally."""
        matcher = compile_pattern("a.b*", "literal")
        assert matcher.search("xa.b*y")
        assert not matcher.search("axbb")

    def test_case_insensitive(self):
        """Test the case flag."""
        assert compile_pattern("todo", case_insensitive=True).search("TODO: x")
        assert not compile_pattern("todo").search("TODO: x")

    def test_whole_word(self):
        """Test word boundaries."""
        matcher = compile_pattern("cat", whole_word=True)
        assert matcher.search("the cat sat")
        assert not matcher.search("concatenate")

    def test_multiline_dot(self):
        """Test that multiline lets '.' span lines."""
        assert compile_pattern("a.b", "regex", multiline=True).search("a\nb")
        assert not compile_pattern("a.b", "regex").search("a\nb")

    def test_fuzzy_whitespace(self):
        """Test that fuzzy mode tolerates whitespace changes."""
        matcher = compile_pattern("def  foo(x):\n    return x", "fuzzy")
        assert matcher.search("def foo(x):\n        return x")
        assert matcher.search("def\tfoo(x):\nreturn x")

    def test_normalize_whitespace(self):
        """Test whitespace normalization."""
        assert normalize_whitespace("  a \t b \r\n  c  ") == "a b\nc"


class TestPresets:
    """Test named presets."""

    def test_unknown_preset(self):
        """Test that unknown presets fail with a hint."""
        with pytest.raises(PatternError) as exc:
            compile_preset("nope")
        assert "tasks_open" in exc.value.hint

    def test_is_preset(self):
        """Test preset name lookup."""
        assert is_preset("tasks_open")
        assert is_preset("frontmatter")
        assert not is_preset("TASKS")

    def test_headings(self):
        """Test heading matches."""
        assert [m.text for m in find_matches(NOTE, compile_preset("headings"))] == ["# Heading"]

    def test_tags(self):
        """Test tag matches; '#' inside a word is not a tag."""
        tags = [m.text for m in find_matches(NOTE, compile_preset("tags"))]
        assert tags == ["#tag", "#other/tag"]

    def test_tasks(self):
        """Test task presets."""
        assert len(find_matches(NOTE, compile_preset("tasks"))) == 2
        assert [m.line for m in find_matches(NOTE, compile_preset("tasks_open"))] == [6]
        assert [m.line for m in find_matches(NOTE, compile_preset("tasks_done"))] == [7]

    def test_wikilinks(self):
        """Test wikilink matches."""
        links = [m.text for m in find_matches(NOTE, compile_preset("wikilinks"))]
        assert links == ["[[Other Page|alias]]", "[[Plain]]"]

    def test_frontmatter_only_at_start(self):
        """Test that frontmatter must open the file."""
        assert find_matches(NOTE, compile_preset("frontmatter"))[0].line == 1
        assert find_matches("text\n---\na\n---\n", compile_preset("frontmatter")) == []

    def test_codeblocks(self):
        """Test fenced code blocks."""
        blocks = find_matches(NOTE, compile_preset("codeblocks"))
        assert len(blocks) == 1
        assert match_line_range(blocks[0]) == LineRange(9, 11)


class TestMatching:
    """Test match helpers."""

    def test_find_matches_positions(self):
        """Test line and column computation."""
        matches = find_matches("ab\ncab\n\nxab", compile_pattern("ab"))
        assert [(m.line, m.column) for m in matches] == [(1, 1), (2, 2), (4, 2)]

    def test_find_matches_cap(self):
        """Test the match cap."""
        assert len(find_matches("a" * 50, compile_pattern("a"), max_matches=7)) == 7

    def test_line_bounds(self):
        """Test line bounds around an offset."""
        assert get_line_bounds("ab\ncd\nef", 4) == (3, 5)
        assert get_line_bounds("ab\ncd", 4) == (3, 5)

    def test_line_number(self):
        """Test that line numbers agree with find_matches."""
        content = "one\ntwo\nthree two\n"
        for match in find_matches(content, compile_pattern("two")):
            assert get_line_number(content, match.offset) == match.line
        assert get_line_number(content, 0) == 1
        assert get_line_number(content, len(content)) == 4

    def test_unique_match(self):
        """Test exactly one match."""
        result = find_unique_match("a\nb\nc\n", compile_pattern("b"))
        assert isinstance(result, UniqueMatch)
        assert result.match.line == 2

    def test_no_match(self):
        """Test zero matches."""
        assert isinstance(find_unique_match("a\n", compile_pattern("z")), NoMatch)

    def test_multiple_matches_never_picks(self):
        """Test that several matches report their lines."""
        result = find_unique_match("x\ny\nx\n", compile_pattern("x"))
        assert isinstance(result, MultipleMatches)
        assert result.count == 2
        assert result.lines == [1, 3]

    def test_match_line_range_multiline(self):
        """Test the line span of a match across lines."""
        [match] = find_matches("a\nstart\nmid\nend\n", compile_pattern("start\nmid\n"))
        assert match_line_range(match) == LineRange(2, 3)

    def test_replace_all(self):
        """Test literal replacement of every match."""
        result = replace_all_matches("a1 b a2\na3", compile_pattern("a", "literal"), "$0")
        assert result.content == "$01 b $02\n$03"
        assert result.count == 3
        assert result.affected_lines == [1, 2]


class TestClustering:
    """Test cluster_matches."""

    def test_clusters_split_on_distance(self):
        """Test that distant matches form separate clusters."""
        content = "\n".join(f"line {i}" + (" hit" if i in (2, 4, 20) else "") for i in range(1, 26))
        matches = find_matches(content, compile_pattern("hit"))
        clusters = cluster_matches(matches, content, context_lines=1, threshold=5)
        assert [(c.start_line, c.end_line) for c in clusters] == [(2, 4), (20, 20)]
        assert clusters[0].before == ["line 1"]
        assert clusters[0].after == ["line 5"]
        assert len(clusters[0].lines) == 3

    def test_empty(self):
        """Test no matches."""
        assert cluster_matches([], "x") == []
