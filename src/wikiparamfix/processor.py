# -*- coding: utf-8 -*-

import logging
import re

from .delimit import delimit
from .parameters import argument_region, get_parameters
from .rewrite import RewriteRule
from .wikitools import (
    find_template_invocations,
    get_argument_count,
    is_main_namespace,
    remove_duplicate_parameters,
    split_to_sections,
)

logger = logging.getLogger(__name__)

# Match the heading of an "External links" section, levels 2 to 6,
# optionally followed by a comment or a line break
EXTERNAL_LINKS_SECTION = re.compile(
    r"^={2,6} *External links? *={2,6}(?: *<!--.*?-->|< *br */ *>)?\s*$", re.MULTILINE | re.IGNORECASE
)


def process_article(article_text, article_title, namespace=0, rule=None):
    """
    Rewrite the template invocation of the last "External links" section.
    :param namespace: the namespace number of the article.
    :param rule: a RewriteRule, the default one if not given.
    :return: (text, summary, skip). The text is the edited one unless skip is
    True, i.e. unless the article is in the main namespace, has exactly one
    invocation with arguments in that section, and the edit changes something.
    """
    if rule is None:
        rule = RewriteRule()
    skip = not is_main_namespace(article_title, namespace)
    summary = rule.summary()

    calls = 0
    sections = split_to_sections(article_text)
    for i in range(len(sections) - 1, -1, -1):
        if not EXTERNAL_LINKS_SECTION.search(sections[i]):
            continue

        for invocation in find_template_invocations(sections[i], rule.names):
            # Process if there are template arguments
            if not get_argument_count(invocation):
                continue
            calls += 1

            delimited = delimit(remove_duplicate_parameters(invocation, rule.duplicates))
            if argument_region(delimited) is None:
                # left as is, its parameters cannot be told apart
                logger.debug("Could not delimit %s", invocation)
                continue
            parameters = get_parameters(delimited)
            replacement = rule.rewrite(parameters, article_title)
            if replacement != invocation:
                sections[i] = sections[i].replace(invocation, replacement)
        break

    new_text = "".join(sections).strip()

    # Skip if the new text is the same as the original or there is not one template call
    if article_text.strip() != new_text and calls == 1:
        article_text = new_text
    else:
        logger.debug("Skipping '%s': %d template calls", article_title, calls)
        skip = True

    return article_text, summary, skip
