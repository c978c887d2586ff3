# -*- coding: utf-8 -*-

import logging
import re

from .wikitools import (
    KEEP_FIRST,
    KEEP_LAST,
    get_parameter_value,
    pagename_base,
    remove_parameters,
    rename_parameters,
    set_parameter_value,
)

logger = logging.getLogger(__name__)

## PARAMS ####################################################################

##
# The template to rewrite, and its redirects
TARGET_TEMPLATE = "Template name"
TEMPLATE_ALIASES = ["Redirect 1", "Redirect 2"]

##
# Always dropped
REMOVE_PARAMETERS = ["id", "1"]

##
# Dropped when their value is the page name without disambiguator
PAGENAME_PARAMETERS = ["name", "2"]

RENAME_MAP = {"1": "id", "2": "name"}

##
# Revision of the bot request, linked from the edit summary
REQUEST_OLDID = "999999999"

SUMMARY = "Remove {{%s}} parameter(s) migrated to Wikidata per [[Special:Permalink/%s#Requests|request]]"

# Match spaces around pipes
PIPE_SPACES = re.compile(r" *\| *")


def split_list(value):
    """Comma separated names, blanks dropped."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_rename_map(value):
    """
    :param value: "old=new,old=new".
    :return: the rename map, in the given order.
    """
    mapping = {}
    for item in split_list(value):
        old, sep, new = item.partition("=")
        if not sep or not old.strip() or not new.strip():
            raise ValueError("Invalid rename %r, expected old=new" % item)
        mapping[old.strip()] = new.strip()
    return mapping


class RewriteRule:  # pylint: disable=R0902

    """
    Which template to rewrite and what to do with its parameters.
    """

    def __init__(  # pylint: disable=R0913
        self,
        template=TARGET_TEMPLATE,
        aliases=None,
        remove=None,
        pagename=None,
        rename=None,
        request_oldid=REQUEST_OLDID,
        duplicates=KEEP_LAST,
    ):
        """
        :param duplicates: KEEP_LAST or KEEP_FIRST, which of repeated parameters survives.
        """
        if duplicates not in (KEEP_FIRST, KEEP_LAST):
            raise ValueError("Unknown duplicate policy: %s" % duplicates)
        self.template = template
        self.aliases = list(TEMPLATE_ALIASES if aliases is None else aliases)
        self.remove = list(REMOVE_PARAMETERS if remove is None else remove)
        self.pagename = list(PAGENAME_PARAMETERS if pagename is None else pagename)
        self.rename = dict(RENAME_MAP if rename is None else rename)
        self.request_oldid = request_oldid
        self.duplicates = duplicates

    @classmethod
    def from_args(cls, args):
        """Build from the command line options of :mod:`wikiparamfix.bot`."""
        return cls(
            template=args.template,
            aliases=split_list(args.aliases),
            remove=split_list(args.remove),
            pagename=split_list(args.pagename),
            rename=parse_rename_map(args.rename),
            request_oldid=args.oldid,
            duplicates=KEEP_FIRST if args.keep_first_duplicate else KEEP_LAST,
        )

    @property
    def names(self):
        return [self.template] + self.aliases

    def summary(self):
        return SUMMARY % (self.template, self.request_oldid)

    def rewrite(self, parameters, title):
        """
        Build a fresh invocation of the template.
        Every parameter is set as name=value, so only those are removed or
        renamed: a value which reads as unnamed, like {{X|a=b}}, is kept.
        :param parameters: the parameter dict of the current invocation.
        :param title: the article title.
        """
        invocation = "{{%s}}" % self.template

        # empty parameters are dropped
        for name, value in parameters.items():
            if value:
                invocation = set_parameter_value(invocation, name, value)
        invocation = PIPE_SPACES.sub("|", invocation)

        invocation = remove_parameters(invocation, self.remove, explicit=True)
        base = pagename_base(title)
        for name in self.pagename:
            if get_parameter_value(invocation, name, explicit=True) == base:
                invocation = remove_parameters(invocation, [name], explicit=True)

        invocation = rename_parameters(invocation, self.rename, explicit=True)
        logger.debug("   rewrite> %s", invocation)
        return invocation
