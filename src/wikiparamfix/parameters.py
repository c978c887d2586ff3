# -*- coding: utf-8 -*-

import logging
import re

from .delimit import collapse_templates, delimit

logger = logging.getLogger(__name__)

# A named parameter: the name extends up to the first "="
NAMED_PARAMETER = re.compile(r"[^=]+=")


def argument_region(delimited):
    """
    :return: (start, end) offsets of the argument list of the template wrapping
    :param delimited:, trimmed of whitespace, or None when the text is not a
    single delimited template.
    """
    text = delimited.text
    tags = delimited.tags()
    if not tags or (tags[0], tags[-1]) not in delimited.pairs:
        return None
    first, last = tags[0], tags[-1]
    if text[: first.start].strip() or text[last.end :].strip():
        return None
    inner = text[first.end : last.start]
    start = first.end + len(inner) - len(inner.lstrip())
    end = last.start - (len(inner) - len(inner.rstrip()))
    return start, end


def get_parameters(delimited):
    """
    Build a dictionary with positional or name key to parameter values.
    :param delimited: a DelimitedText holding one template.

    Parameters can be either named or unnamed. In the latter case, their
    name is defined by their ordinal position (1, 2, 3, ...), counting unnamed
    parameters only: {{T|a|name=b|c}} gives 1=a, name=b, 2=c. Skipped unnamed
    parameters still count, {{T|a||c}} gives an empty 2.

    It is legal for a parameter to be specified several times, in which case
    the last assignment takes precedence: {{T|id=1|id=2}} gives id=2.

    Templates nested in a value are kept as plain text, braces and all.
    Malformed markup never raises, it only yields fewer parameters: a template
    which could not be delimited as a whole yields none.
    """
    parameters = {}

    # remove main delimiters
    region = argument_region(delimited)
    if region is None:
        logger.debug("   get_parameters> not a delimited template: %s", delimited.text)
        return parameters
    start, end = region

    # unescape nested parameters
    body = collapse_templates(delimited, start, end)

    text = body.text
    pipes = body.pipes(start, end)
    unnamed = 0
    for i, pipe in enumerate(pipes):
        stop = pipes[i + 1].start if i + 1 < len(pipes) else end
        segment = text[pipe.end : stop].strip()

        # Parameter values may contain "=" symbols, hence the parameter
        # name extends up to the first such symbol.
        m = NAMED_PARAMETER.match(segment)
        if m:
            name = segment[: m.end() - 1].strip()
            value = segment[m.end() :].strip()
        else:
            unnamed += 1
            name = str(unnamed)
            value = segment

        parameters[name] = value

    logger.debug("   get_parameters> %s", parameters)
    return parameters


def extract_parameters(text):
    """Parameters of the template invocation :param text:, in raw wikitext."""
    return get_parameters(delimit(text))
