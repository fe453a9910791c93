"""Unit tests for directive tokenizing and parsing."""

import pytest

from kscriptlet.directives import (
    DirectiveSet,
    LocatedReference,
    Repository,
    SourceKind,
    TokenKind,
    is_valid_coordinate,
    parse_directives,
    tokenize,
    tokenize_line,
)
from kscriptlet.errors import DirectiveError


class TestTokenize:
    """Tests for the never-throwing line tokenizer."""

    def test_comment_dependencies(self):
        """Test //DEPS splits on commas and whitespace."""
        token = tokenize_line("//DEPS a:b:1.0, c:d:2.0  e:f:3", 4)
        assert token.kind == TokenKind.DEPENDENCIES
        assert token.values == ("a:b:1.0", "c:d:2.0", "e:f:3")
        assert token.line_number == 4

    def test_annotation_dependencies(self):
        """Test @file:DependsOn with several string arguments."""
        token = tokenize_line('@file:DependsOn("a:b:1.0", "c:d:2.0")', 1)
        assert token.kind == TokenKind.DEPENDENCIES
        assert token.values == ("a:b:1.0", "c:d:2.0")

    def test_marker_must_start_the_line(self):
        """Test markers after code are not directives."""
        assert tokenize_line('val x = 1 //DEPS a:b:1.0', 1) is None
        assert tokenize_line('println("//INCLUDE foo.kt")', 1) is None

    def test_leading_whitespace_allowed(self):
        """Test indentation before the marker is accepted."""
        token = tokenize_line("    //INCLUDE util.kt", 1)
        assert token.kind == TokenKind.INCLUDE
        assert token.values == ("util.kt",)

    def test_unknown_markers_ignored(self):
        """Test unknown comment markers and annotations produce no token."""
        assert tokenize_line("//FUTURE_FEATURE something", 1) is None
        assert tokenize_line('@file:JvmName("Foo")', 1) is None
        assert tokenize_line("// DEPS a:b:1.0", 1) is None

    def test_repository_annotation_becomes_pair(self):
        """Test @file:MavenRepository(id, url) yields an id=url value."""
        token = tokenize_line('@file:MavenRepository("jitpack", "https://jitpack.io")', 1)
        assert token.kind == TokenKind.REPOSITORY
        assert token.values == ("jitpack=https://jitpack.io",)

    def test_options_are_shell_split(self):
        """Test option directives keep quoted arguments together."""
        token = tokenize_line('//COMPILER_OPTS -jvm-target 11 -Xopt-in="a b"', 1)
        assert token.kind == TokenKind.COMPILER_OPTIONS
        assert token.values == ("-jvm-target", "11", "-Xopt-in=a b")

    def test_unbalanced_quotes_do_not_raise(self):
        """Test the tokenizer falls back to whitespace splitting."""
        token = tokenize_line('//KOTLIN_OPTS -J-Dfoo="bar', 1)
        assert token.values == ('-J-Dfoo="bar',)

    def test_package_line(self):
        """Test package declarations are tokenized."""
        token = tokenize_line("package com.example.tools", 1)
        assert token.kind == TokenKind.PACKAGE
        assert token.values == ("com.example.tools",)

    @pytest.mark.parametrize(
        "line",
        ["", "   ", "//", "@file:", "@file:DependsOn(", '@file:DependsOn("unterminated)', "//DEPS", "\x00\xff", "package"],
    )
    def test_garbage_never_raises(self, line):
        """Test arbitrary input never makes the tokenizer throw."""
        list(tokenize(line))

    def test_tokenize_reports_line_numbers(self):
        """Test tokens carry 1-based line numbers."""
        text = "println(1)\n//DEPS a:b:1\n\n//ENTRY Foo\n"
        tokens = list(tokenize(text))
        assert [(t.kind, t.line_number) for t in tokens] == [(TokenKind.DEPENDENCIES, 2), (TokenKind.ENTRY_POINT, 4)]


class TestCoordinates:
    """Tests for coordinate validation."""

    @pytest.mark.parametrize(
        "coordinate",
        ["a:b:1.0", "org.jetbrains:annotations:24.0.1", "a:b:jar:1.0", "a:b:jar:sources:1.0", "a:b:1.0@pom"],
    )
    def test_valid(self, coordinate):
        assert is_valid_coordinate(coordinate)

    @pytest.mark.parametrize("coordinate", ["a:b", "a", "a::1.0", "a:b:c:d:e:f", ":b:1.0", "a:b:1.0@"])
    def test_invalid(self, coordinate):
        assert not is_valid_coordinate(coordinate)


class TestParseDirectives:
    """Tests for parse_directives() reduction and validation."""

    def test_full_script(self):
        """Test all directive kinds end up in the DirectiveSet."""
        text = """\
#!/usr/bin/env kscriptlet
//DEPS com.squareup.okhttp3:okhttp:4.12.0
@file:DependsOn("org.slf4j:slf4j-api:2.0.9")
//REPOS jitpack=https://jitpack.io
//INCLUDE util.kt
//COMPILE model/Model.kt
//JAR lib/legacy.jar
//KOTLIN_OPTS -J-Xmx2g
//COMPILER_OPTS -jvm-target 11

println("hi")
"""
        directives = parse_directives(text, SourceKind.SCRIPT, context="/work")

        assert directives.dependencies == ["com.squareup.okhttp3:okhttp:4.12.0", "org.slf4j:slf4j-api:2.0.9"]
        assert directives.repositories == [Repository("jitpack", "https://jitpack.io")]
        assert directives.includes == [LocatedReference("util.kt", "/work")]
        assert directives.compiles == [LocatedReference("model/Model.kt", "/work")]
        assert directives.jars == [LocatedReference("lib/legacy.jar", "/work")]
        assert directives.runtime_options == ["-J-Xmx2g"]
        assert directives.compiler_options == ["-jvm-target", "11"]
        assert directives.entry_point is None

    def test_duplicate_dependencies_collapsed(self):
        """Test repeated coordinates are kept once, in first-seen order."""
        text = "//DEPS b:b:1, a:a:1\n//DEPS a:a:1, c:c:1\n"
        assert parse_directives(text).dependencies == ["b:b:1", "a:a:1", "c:c:1"]

    def test_malformed_coordinate(self):
        """Test a malformed coordinate raises DirectiveError with the line."""
        with pytest.raises(DirectiveError) as excinfo:
            parse_directives("println(1)\n//DEPS not-a-coordinate\n")
        assert excinfo.value.line_number == 2
        assert "not-a-coordinate" in str(excinfo.value)

    def test_malformed_repository(self):
        """Test a repository without id=url raises DirectiveError."""
        with pytest.raises(DirectiveError):
            parse_directives("//REPOS https://jitpack.io\n")

    def test_entry_point_on_script_rejected(self):
        """Test //ENTRY is only allowed for class-style sources."""
        with pytest.raises(DirectiveError, match="only supported for .kt"):
            parse_directives("//ENTRY Main\n", SourceKind.SCRIPT)

    def test_entry_point_on_class_source(self):
        """Test //ENTRY and package are picked up for .kt sources."""
        text = "package com.example\n//ENTRY Runner\nfun main() {}\n"
        directives = parse_directives(text, SourceKind.CLASS)
        assert directives.entry_point == "Runner"
        assert directives.package == "com.example"

    def test_conflicting_entry_points(self):
        """Test two different entry points are rejected."""
        with pytest.raises(DirectiveError, match="Conflicting"):
            parse_directives("//ENTRY A\n@file:EntryPoint(\"B\")\n", SourceKind.CLASS)

    def test_include_without_target(self):
        """Test an empty //INCLUDE is rejected."""
        with pytest.raises(DirectiveError):
            parse_directives("//INCLUDE\n")

    def test_no_directives(self):
        """Test plain code yields an empty DirectiveSet."""
        assert parse_directives("println(1+1)") == DirectiveSet()


class TestDirectiveSetMerge:
    """Tests for DirectiveSet.merge()."""

    def test_union_keeps_first_seen_order(self):
        first = DirectiveSet(dependencies=["a:a:1", "b:b:1"], repositories=[Repository("r", "u")])
        second = DirectiveSet(dependencies=["b:b:1", "c:c:1"], repositories=[Repository("r", "u")])
        first.merge(second)
        assert first.dependencies == ["a:a:1", "b:b:1", "c:c:1"]
        assert first.repositories == [Repository("r", "u")]

    def test_first_package_wins(self):
        first = DirectiveSet(package="a")
        first.merge(DirectiveSet(package="b"))
        assert first.package == "a"

    def test_conflicting_entry_points(self):
        first = DirectiveSet(entry_point="A")
        with pytest.raises(DirectiveError):
            first.merge(DirectiveSet(entry_point="B"))
