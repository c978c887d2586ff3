"""Tests for explicit template delimiting."""

import pytest

from wikiparamfix.delimit import (
    ESCAPED,
    MAX_DELIMIT_PASSES,
    PIPE,
    START,
    collapse_templates,
    delimit,
    escape,
    undelimit,
    unused_marks,
)


def test_delimit_single_template():
    delimited = delimit("{{T|a|b=c}}")

    assert delimited.tagged() == "<start T>T<pipe>a<pipe>b=c<end T>"
    assert len(delimited.templates()) == 1
    left, right = delimited.templates()[0]
    assert (left.start, left.end, left.name) == (0, 2, "T")
    assert (right.start, right.end, right.name) == (9, 11, "T")


def test_delimit_nested_templates_innermost_first():
    delimited = delimit("{{A|x={{B|y}}}}")

    assert delimited.tagged() == "<start A>A<pipe>x=<start B>B<pipe>y<end B><end A>"
    assert [left.name for left, _ in delimited.templates()] == ["A", "B"]


def test_delimit_trims_template_name():
    delimited = delimit("{{ \n Some name \n| a }}")

    assert delimited.tagged() == "<start Some name> \n Some name \n<pipe> a <end Some name>"
    assert delimited.templates()[0][0].name == "Some name"


def test_delimit_marks_pipes_outside_templates():
    assert delimit("a|b {{T}}").tagged() == "a<pipe>b <start T>T<end T>"


def test_delimit_keeps_wikilink_pipe():
    delimited = delimit("{{T|[[Foo|bar]]|b}}")

    assert delimited.tagged() == "<start T>T<pipe>[[Foo|bar]]<pipe>b<end T>"


def test_delimit_restores_only_last_wikilink_pipe():
    """Only the pipe closest to the closing brackets is a wikilink pipe."""
    delimited = delimit("{{T|[[File:X.jpg|thumb|Caption]]}}")

    assert delimited.tagged() == "<start T>T<pipe>[[File:X.jpg<pipe>thumb|Caption]]<end T>"


def test_delimit_leaves_literal_blocks_untouched():
    text = "{{T|<nowiki>{{X|y}}</nowiki>|<PRE>a|b</pre>}}"
    delimited = delimit(text)

    assert delimited.tagged() == "<start T>T<pipe><nowiki>{{X|y}}</nowiki><pipe><PRE>a|b</pre><end T>"
    escaped = [span for span in delimited.spans if span.kind == ESCAPED]
    assert [text[span.start : span.end] for span in escaped] == ["<nowiki>{{X|y}}</nowiki>", "<PRE>a|b</pre>"]


def test_escape_gives_identical_blocks_their_own_span():
    text = "<nowiki>|</nowiki> and <nowiki>|</nowiki>"
    view, escaped = escape(text)

    assert len(view) == len(text)
    assert "|" not in view
    assert [(span.start, span.end) for span in escaped] == [(0, 18), (23, 41)]


def test_delimit_template_named_by_template_is_not_delimited():
    delimited = delimit("{{ {{X}} |a}}")

    assert [left.name for left, _ in delimited.templates()] == ["X"]
    assert delimited.tagged() == "{{ <start X>X<end X> <pipe>a}}"


def test_unused_marks_skips_characters_in_text():
    assert unused_marks("", 2) == ["\ue000", "\ue001"]
    assert unused_marks("a\ue000b", 2) == ["\ue001", "\ue002"]


def test_delimit_with_marker_like_characters_in_source():
    text = "{{T|\ue000|\ue001<pipe>}}"
    delimited = delimit(text)

    assert len(delimited.pipes()) == 2
    assert delimited.tagged() == "<start T>T<pipe>\ue000<pipe>\ue001<pipe><end T>"
    assert undelimit(delimited) == text


def test_delimit_stops_after_pass_limit():
    depth = MAX_DELIMIT_PASSES + 2
    text = "".join("{{T%d|" % i for i in range(depth)) + "x" + "}}" * depth

    delimited = delimit(text)

    assert len(delimited.templates()) == MAX_DELIMIT_PASSES
    assert delimited.tagged().startswith("{{T0<pipe>{{T1<pipe><start T2>")
    assert undelimit(delimited) == text


@pytest.mark.parametrize(
    "text",
    [
        "",
        "plain text",
        "{{T|a|b}}",
        "{{Template name|1=12345|2=Example Page|other=kept}}",
        "{{A|x={{B|y|{{C}}}}|[[l|k]]}} tail | pipe",
        "{{T|<nowiki>{{X|y}}</nowiki>}}",
        "{{unclosed|a",
        "}} {{ stray }} {",
        "{{T|a{b}}",
        "[[File:X.jpg|thumb|{{T|a}}]]",
    ],
)
def test_undelimit_reverses_delimit(text):
    assert undelimit(delimit(text)) == text
    assert str(delimit(text)) == text


def test_collapse_templates_in_region():
    delimited = delimit("{{T|a={{X|1}}|b={{X|2}}}}")
    outer = delimited.templates()[0]

    collapsed = collapse_templates(delimited, outer[0].end, outer[1].start)

    assert collapsed.tagged() == "<start T>T<pipe>a={{X|1}}<pipe>b={{X|2}}<end T>"
    assert [left.name for left, _ in collapsed.templates()] == ["T"]


def test_collapse_templates_whole_text():
    collapsed = collapse_templates(delimit("a|{{X|{{Y|1}}}}"))

    assert collapsed.tagged() == "a<pipe>{{X|{{Y|1}}}}"
    assert [span.kind for span in collapsed.spans] == [PIPE]


def test_spans_are_ordered():
    delimited = delimit("{{A|{{B}}|c}}")

    starts = [span.start for span in delimited.spans]
    assert starts == sorted(starts)
    assert [span.kind for span in delimited.spans][:2] == [START, PIPE]
