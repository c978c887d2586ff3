"""Tests for the dump and export command line tool."""

import io
import queue

import pytest

from wikiparamfix.bot import (
    FOOTER,
    HEADER,
    format_page,
    main,
    read_export,
    read_pages,
    reduce_process,
    rewrite_page,
    rewrite_process,
)
from wikiparamfix.rewrite import RewriteRule

DUMP = """<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.10/" xml:lang="en">
  <siteinfo>
    <sitename>Wikipedia</sitename>
  </siteinfo>
  <page>
    <title>Example Page</title>
    <ns>0</ns>
    <id>10</id>
    <revision>
      <id>100</id>
      <text bytes="90" xml:space="preserve">Lead &amp; more
== External links ==
* {{Template name|1=12345|2=Example Page|other=kept}}</text>
    </revision>
  </page>
  <page>
    <title>Old name</title>
    <ns>0</ns>
    <id>11</id>
    <redirect title="Example Page" />
    <revision>
      <id>101</id>
      <text bytes="26" xml:space="preserve">#REDIRECT [[Example Page]]</text>
    </revision>
  </page>
  <page>
    <title>Talk:Example Page</title>
    <ns>1</ns>
    <id>12</id>
    <revision>
      <id>102</id>
      <text bytes="0" />
    </revision>
  </page>
</mediawiki>
"""

EXAMPLE_TEXT = "Lead & more\n== External links ==\n* {{Template name|1=12345|2=Example Page|other=kept}}"
EDITED_TEXT = "Lead & more\n== External links ==\n* {{Template name|other=kept}}"


def test_read_pages():
    pages = list(read_pages(io.StringIO(DUMP)))

    assert pages == [
        ("10", "Example Page", 0, EXAMPLE_TEXT),
        ("12", "Talk:Example Page", 1, ""),
    ]


def test_read_export():
    pages = read_export(io.StringIO(DUMP))

    assert [page[:3] for page in pages] == [
        ("10", "Example Page", 0),
        ("11", "Old name", 0),
        ("12", "Talk:Example Page", 1),
    ]
    assert pages[0][3] == EXAMPLE_TEXT


def test_read_export_without_title():
    with pytest.raises(ValueError):
        read_export(io.StringIO("<mediawiki><page><ns>0</ns></page></mediawiki>"))


def test_format_page_escapes():
    page = format_page("7", "A & B", 0, "x < y", "summary")

    assert "<title>A &amp; B</title>" in page
    assert "<ns>0</ns>" in page
    assert "<id>7</id>" in page
    assert '<text xml:space="preserve">x &lt; y</text>' in page


def test_rewrite_page():
    page = rewrite_page("10", "Example Page", 0, EXAMPLE_TEXT, RewriteRule())

    assert "<title>Example Page</title>" in page
    assert "<comment>Remove {{Template name}} parameter(s)" in page
    assert "* {{Template name|other=kept}}</text>" in page


def test_rewrite_page_skipped():
    assert rewrite_page("12", "Talk:Example Page", 1, EXAMPLE_TEXT, RewriteRule()) is None
    assert rewrite_page("13", "Empty", 0, "", RewriteRule()) is None


def test_rewrite_and_reduce(tmp_path):
    jobs = queue.Queue()
    results = queue.Queue()
    for ordinal, page in enumerate(read_pages(io.StringIO(DUMP))):
        jobs.put(page + (ordinal,))
    jobs.put(None)

    rewrite_process(jobs, results, RewriteRule())
    results.put(None)
    out_file = tmp_path / "edited.xml"
    reduce_process(results, str(out_file))

    output = out_file.read_text(encoding="utf-8")
    assert output.startswith(HEADER)
    assert output.endswith(FOOTER)
    assert output.count("<page>") == 1
    with open(out_file, encoding="utf-8") as file_handle:
        assert read_export(file_handle) == [("10", "Example Page", 0, EDITED_TEXT)]


def test_reduce_keeps_input_order(tmp_path):
    results = queue.Queue()
    results.put((1, format_page("2", "Second", 0, "b", "s")))
    results.put((0, format_page("1", "First", 0, "a", "s")))
    results.put((2, None))
    results.put(None)
    out_file = tmp_path / "edited.xml"

    reduce_process(results, str(out_file))

    output = out_file.read_text(encoding="utf-8")
    assert output.index("First") < output.index("Second")


def test_main_article_mode(tmp_path, capsys):
    export = tmp_path / "export.xml"
    export.write_text(DUMP, encoding="utf-8")

    main([str(export), "-a", "-q"])

    out = capsys.readouterr().out
    assert "== Example Page ==\nSummary: Remove {{Template name}}" in out
    assert EDITED_TEXT in out
    assert "Skipped: Old name" in out
    assert "Skipped: Talk:Example Page" in out


def test_main_article_mode_custom_rule(tmp_path, capsys):
    export = tmp_path / "export.xml"
    export.write_text(DUMP, encoding="utf-8")

    main([str(export), "-a", "-q", "--remove", "other", "--pagename", "", "--rename", "", "--oldid", "42"])

    out = capsys.readouterr().out
    assert "Special:Permalink/42#Requests" in out
    assert "* {{Template name|1=12345|2=Example Page}}" in out


def test_main_invalid_rename(tmp_path):
    export = tmp_path / "export.xml"
    export.write_text(DUMP, encoding="utf-8")

    with pytest.raises(SystemExit):
        main([str(export), "-a", "--rename", "1"])
