# -*- coding: utf-8 -*-

"""
Helpers over raw wikitext: sections, namespaces, template invocations and the
arguments of a single invocation.

The argument helpers take and return the raw invocation string, e.g.

    set_parameter_value("{{T|a=1}}", "b", "2") == "{{T|a=1|b=2}}"

and leave input they cannot read as a template unchanged.
"""

import logging
import re

import mwparserfromhell
from mwparserfromhell.nodes.extras import Parameter
from mwparserfromhell.utils import parse_anything

logger = logging.getLogger(__name__)

# Duplicate parameter policies
KEEP_FIRST = "first"
KEEP_LAST = "last"

# Match a heading line. Only comments or a line break may follow the closing "="
HEADING = re.compile(r"^={1,6}[^\n]+?={1,6}(?: *<!--.*?-->| *< *br */? *>)*[ \t]*$", re.MULTILINE)

# Match HTML comments
COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)

# Match a trailing disambiguator, as in "Mercury (planet)"
DISAMBIGUATOR = re.compile(r" +\([^\)]+\)$")

TEMPLATE_PREFIX = re.compile(r"^template\s*:\s*", re.IGNORECASE)

##
# Namespace names and aliases, lower case, "_" as " "
NAMESPACES = set(
    [
        "media",
        "special",
        "talk",
        "user",
        "user talk",
        "wikipedia",
        "wikipedia talk",
        "project",
        "project talk",
        "wp",
        "wt",
        "file",
        "file talk",
        "image",
        "image talk",
        "mediawiki",
        "mediawiki talk",
        "template",
        "template talk",
        "help",
        "help talk",
        "category",
        "category talk",
        "portal",
        "portal talk",
        "draft",
        "draft talk",
        "timedtext",
        "timedtext talk",
        "module",
        "module talk",
    ]
)


# ----------------------------------------------------------------------
# Titles


def ucfirst(string):
    """:return: a string with just its first character uppercase
    We can't use title() since it coverts all words.
    """
    if string:
        return string[0].upper() + string[1:]
    return ""


def normalize_name(name):
    return re.sub(r"[\s_]+", " ", name).strip()


def is_main_namespace(title, namespace=0):
    """
    :param namespace: the namespace number, when known.
    :return: whether :param title: is an article, i.e. has no namespace prefix.
    """
    if namespace:
        return False
    colon = title.find(":")
    if colon < 0:
        return True
    return normalize_name(title[:colon]).lower() not in NAMESPACES


def pagename_base(title):
    """The title without its disambiguator."""
    return DISAMBIGUATOR.sub("", title)


# ----------------------------------------------------------------------
# Sections


def split_to_sections(text):
    """
    Split :param text: before every heading.
    The lead, if any, is the first section. Joining the sections gives back the text.
    """
    sections = []
    cur = 0
    for m in HEADING.finditer(text):
        if m.start() > cur:
            sections.append(text[cur : m.start()])
            cur = m.start()
    sections.append(text[cur:])
    return sections


# ----------------------------------------------------------------------
# Template invocations


def find_matching_braces(text):  # noqa: C901 # pylint: disable=R0912
    """
    :return: an iterator of (start, end) pairs of the outermost {{...}} and
    {{{...}}} spans in :param text:.
    """
    # Parsing is done with respect to pairs of double braces {{..}} delimiting
    # a template, and pairs of triple braces {{{..}}} delimiting a tplarg.
    # If double opening braces are followed by triple closing braces or
    # conversely, this is taken as delimiting a template, with one left-over
    # brace outside it, taken as plain text.

    # An opening with no closing is skipped, and the search goes on after it.

    re_open = re.compile("[{]{2,}")
    re_next = re.compile("[{]{2,}|}{2,}")

    cur = 0
    while True:
        m1 = re_open.search(text, cur)
        if not m1:
            return
        stack = [m1.end() - m1.start()]  # stack of opening braces lengths
        end = m1.end()
        while True:
            m2 = re_next.search(text, end)
            if not m2:
                cur = m1.end()  # unbalanced
                break
            end = m2.end()
            lmatch = m2.end() - m2.start()

            if m2.group()[0] == "{":
                stack.append(lmatch)
                continue
            while stack:
                open_count = stack.pop()  # opening span
                if lmatch >= open_count:
                    lmatch -= open_count
                    if lmatch <= 1:  # either close or stray }
                        break
                else:
                    # put back unmatched
                    stack.append(open_count - lmatch)
                    break
            if not stack:
                yield m1.start(), end - lmatch
                cur = end
                break
            if len(stack) == 1 and stack[0] == 1:
                # ambiguous {{{ }}
                yield m1.start() + 1, end
                cur = end
                break


def normalize_template_name(name):
    name = normalize_name(COMMENT.sub("", name))
    return ucfirst(TEMPLATE_PREFIX.sub("", name))


def find_template_invocations(text, names):
    """
    :param names: the template name and its redirects.
    :return: the list of invocations of the template in :param text:, as raw wikitext.

    Invocations in the arguments of another template are found as well, but
    not those in the arguments of an invocation already found.
    """
    wanted = set(normalize_template_name(name) for name in names)
    invocations = []
    for s, e in find_matching_braces(text):
        body = text[s + 2 : e - 2]
        if normalize_template_name(body.split("|", 1)[0]) in wanted:
            invocations.append(text[s:e])
        else:
            invocations.extend(find_template_invocations(body, names))
    return invocations


# ----------------------------------------------------------------------
# Template arguments


def _parse(invocation):
    code = mwparserfromhell.parse(invocation)
    templates = code.filter_templates(recursive=False)
    if not templates:
        logger.debug("Not a template invocation: %s", invocation)
        return code, None
    return code, templates[0]


def _unhide_following(template, index):
    """Show the keys of the unnamed parameters after :param index:, so they keep their position."""
    for param in template.params[index + 1 :]:
        if not param.showkey:
            param.showkey = True


def _index(template, param):
    return next(i for i, other in enumerate(template.params) if other is param)


def _named(template, name, explicit=False):
    """
    The parameters named :param name:. When some of them are given as
    ``name=value``, only those: {{T|x|1=y}} names "1" twice, "y" is the one
    addressed by "1".
    :param explicit: ignore unnamed parameters altogether.
    """
    name = str(name).strip()
    params = [param for param in template.params if param.name.strip() == name]
    keyed = [param for param in params if param.showkey]
    if keyed or explicit:
        return keyed
    return params


def get_argument_count(invocation):
    _, template = _parse(invocation)
    if template is None:
        return 0
    return len(template.params)


def get_parameter_value(invocation, name, explicit=False):
    """The trimmed value of the parameter :param name:, "" when absent."""
    _, template = _parse(invocation)
    if template is None:
        return ""
    params = _named(template, name, explicit)
    if not params:
        return ""
    return params[-1].value.strip()


def set_parameter_value(invocation, name, value):
    """Set :param name: to :param value:, appending ``name=value`` when absent."""
    code, template = _parse(invocation)
    if template is None:
        return invocation
    params = [param for param in template.params if param.name.strip() == str(name).strip()]
    if all(param.showkey for param in params):
        template.add(name, value, showkey=True)
        return str(code)
    # An unnamed parameter has this number, and is kept
    keyed = [param for param in params if param.showkey]
    if keyed:
        keyed[-1].value = value
    else:
        template.params.append(Parameter(parse_anything(name), parse_anything(value)))
    return str(code)


def remove_parameters(invocation, names, explicit=False):
    """
    Remove the parameters named in :param names:. An unnamed parameter is
    removed only when no parameter has the same name explicitly, and the
    unnamed parameters after it keep their numbers.
    :param explicit: never remove unnamed parameters.
    """
    code, template = _parse(invocation)
    if template is None:
        return invocation
    for name in names:
        for param in _named(template, name, explicit):
            index = _index(template, param)
            if not param.showkey:
                _unhide_following(template, index)
            template.params.pop(index)
    return str(code)


def rename_parameters(invocation, mapping, explicit=False):
    """
    Rename parameters, old name to new name, in :param mapping: order.
    A parameter is left alone when a parameter with the new name already exists.
    :param explicit: never rename unnamed parameters.
    """
    code, template = _parse(invocation)
    if template is None:
        return invocation
    for old, new in mapping.items():
        params = _named(template, old, explicit)
        if not params or template.has(new):
            continue
        param = params[-1]
        if not param.showkey:
            _unhide_following(template, _index(template, param))
        param.name = new
        param.showkey = True
    return str(code)


def remove_duplicate_parameters(invocation, keep=KEEP_LAST):
    """
    Drop repeated parameters with the same name.
    :param keep: KEEP_LAST keeps the last occurrence of each name, KEEP_FIRST the first.
    """
    code, template = _parse(invocation)
    if template is None:
        return invocation
    indexes = list(range(len(template.params)))
    if keep == KEEP_LAST:
        indexes.reverse()
    seen = set()
    duplicates = []
    for i in indexes:
        name = template.params[i].name.strip()
        if name in seen:
            duplicates.append(i)
        else:
            seen.add(name)
    if not duplicates:
        return invocation
    for i in sorted(duplicates, reverse=True):
        if not template.params[i].showkey:
            _unhide_following(template, i)
        template.params.pop(i)
    logger.debug("Removed %d duplicate parameters", len(duplicates))
    return str(code)
