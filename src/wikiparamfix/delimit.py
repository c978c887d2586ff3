# -*- coding: utf-8 -*-

"""Explicit template delimiting.

Templates, their parameter separators and literal blocks are located once and
recorded as spans over the untouched source text:

    {{Name|a|b={{X|c}}}}

is delimited into start/end spans for ``Name`` and ``X`` and pipe spans for
each separator, which renders (see :meth:`DelimitedText.tagged`) as

    <start Name>Name<pipe>a<pipe>b=<start X>X<pipe>c<end X><end Name>

Matching is done on a scratch view of the text which has the same length as the
source: literal blocks are masked, and pipe markers and template tags are
single characters which do not occur in the source, so every offset found in
the view is an offset into the source.
"""

import logging
import re
from collections import namedtuple

logger = logging.getLogger(__name__)

# Span kinds
ESCAPED = "escaped"
START = "start"
END = "end"
PIPE = "pipe"

##
# Innermost templates are delimited first, one nesting level per pass.
# Pathological nesting beyond this is left as plain braces.
MAX_DELIMIT_PASSES = 10

# Match literal blocks, which are never delimited
ESCAPE_RE = re.compile(r"<\s*(nowiki|pre)\s*>.*?<\s*/\s*\1\s*>", re.DOTALL | re.IGNORECASE)

# Replaces each character of a literal block in the scratch view
FILLER = "_"

# First code point tried for markers (Unicode private use area)
MARK_BASE = 0xE000

# source text of each structural span
SOURCE = {START: "{{", END: "}}", PIPE: "|"}

Span = namedtuple("Span", ["kind", "start", "end", "name"])


def unused_marks(text, count):
    """
    :return: :param count: distinct characters, none of which occurs in :param text:.
    """
    marks = []
    code = MARK_BASE
    while len(marks) < count:
        char = chr(code)
        if char not in text:
            marks.append(char)
        code += 1
    return marks


def escape(text):
    """
    Hide literal blocks.
    :return: the scratch view, where each literal block is replaced by a filler
    run of the same length, and the list of escaped spans, in text order.

    Identical blocks get their own span each. Nothing needs restoring
    afterwards: spans refer to the source text, which keeps the blocks.
    """
    escaped = []
    view = ""
    cur = 0
    for m in ESCAPE_RE.finditer(text):
        escaped.append(Span(ESCAPED, m.start(), m.end(), m.group(1).lower()))
        view += text[cur : m.start()] + FILLER * (m.end() - m.start())
        cur = m.end()
    return view + text[cur:], escaped


class DelimitedText:

    """
    Source text together with the spans found by :func:`delimit`.
    """

    def __init__(self, text, spans, pairs=()):
        """
        :param text: the source text, never modified.
        :param spans: the escaped, start, end and pipe spans.
        :param pairs: (start, end) span pairs, one per delimited template.
        """
        self.text = text
        self.spans = sorted(spans, key=lambda span: span.start)
        self.pairs = sorted(pairs, key=lambda pair: pair[0].start)

    def templates(self):
        return list(self.pairs)

    def pipes(self, start=0, end=None):
        if end is None:
            end = len(self.text)
        return [span for span in self.spans if span.kind == PIPE and start <= span.start and span.end <= end]

    def tags(self):
        return [span for span in self.spans if span.kind in (START, END)]

    def tagged(self):
        """
        Render as tagged text, <start Name>...<pipe>...<end Name>.
        Literal blocks are left verbatim.
        """
        res = ""
        cur = 0
        for span in self.spans:
            if span.kind == ESCAPED:
                continue
            res += self.text[cur : span.start]
            if span.kind == START:
                res += "<start %s>" % span.name
            elif span.kind == END:
                res += "<end %s>" % span.name
            else:
                res += "<pipe>"
            cur = span.end
        return res + self.text[cur:]

    def __str__(self):
        return undelimit(self)

    def __repr__(self):
        return "DelimitedText(%r)" % self.tagged()


def delimit(text):  # pylint: disable=R0914
    """
    Explicitly delimit templates in :param text:.
    :return: a DelimitedText.

    Every "|" outside literal blocks is a separator, except the last one before
    the closing bracket of a [[wikilink|label]]. Templates are then delimited
    from the innermost outwards, at most MAX_DELIMIT_PASSES levels deep.
    """
    pipe_mark, tag_mark = unused_marks(text, 2)
    view, escaped = escape(text)

    # delimit parameters
    view = view.replace("|", pipe_mark)
    # unescape wikilinks
    view = re.sub(r"\[\[([^\]]+)" + re.escape(pipe_mark), r"[[\1|", view)

    # A template whose body holds no further braces. The name cannot contain
    # a tag, so a template named by another template is never delimited.
    template_re = re.compile(
        r"\{\{(\s*([^<{}%s]+?)\s*(?:%s[^{}]*)?)\}\}" % (pipe_mark, pipe_mark), re.DOTALL
    )
    tag = "<" + tag_mark

    pairs = []

    def delimit_template(m):
        name = text[m.start(2) : m.end(2)]
        pairs.append((Span(START, m.start(), m.start() + 2, name), Span(END, m.end() - 2, m.end(), name)))
        return tag + m.group(1) + tag

    count = 0
    while "{{" in view and count < MAX_DELIMIT_PASSES:
        view = template_re.sub(delimit_template, view)
        count += 1
    if "{{" in view:
        logger.debug("Undelimited braces left after %d passes", count)

    spans = list(escaped)
    for left, right in pairs:
        spans.append(left)
        spans.append(right)
    spans.extend(Span(PIPE, i, i + 1, None) for i, char in enumerate(view) if char == pipe_mark)

    return DelimitedText(text, spans, pairs)


def undelimit(delimited):
    """
    Reverse explicit template delimiting.
    :return: the text, with braces and pipes for every start, end and pipe span.
    """
    res = ""
    cur = 0
    for span in delimited.spans:
        if span.kind == ESCAPED:
            continue
        res += delimited.text[cur : span.start] + SOURCE[span.kind]
        cur = span.end
    return res + delimited.text[cur:]


def collapse_templates(delimited, start=0, end=None):
    """
    Undelimit the templates nested between :param start: and :param end:.
    :return: a DelimitedText where every outermost template inside the region,
    and everything within it, is plain text again.

    A template is matched with its own end tag, so sibling templates with the
    same name are collapsed separately.
    """
    if end is None:
        end = len(delimited.text)

    regions = []
    for left, right in delimited.pairs:
        if left.start < start or right.end > end:
            continue
        if regions and left.start < regions[-1][1]:
            continue  # nested in the previous one
        regions.append((left.start, right.end))

    def inside(span):
        return any(s <= span.start and span.end <= e for s, e in regions)

    spans = [span for span in delimited.spans if span.kind == ESCAPED or not inside(span)]
    pairs = [pair for pair in delimited.pairs if not inside(pair[0])]
    return DelimitedText(delimited.text, spans, pairs)
