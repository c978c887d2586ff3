#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Template parameter bot:
Rewrites the external links template of the articles of a MediaWiki XML dump,
dropping parameters migrated to Wikidata and renaming the others. Only
articles with exactly one invocation with arguments in their "External links"
section are edited.

Edited pages are written as an XML export:

    <mediawiki>
      <page>
        <title>...</title>
        <ns>0</ns>
        <id>...</id>
        <comment>edit summary</comment>
        <text xml:space="preserve">new wikitext</text>
      </page>
      ...
    </mediawiki>
"""

import argparse
import bz2
import gzip
import html
import logging
import os.path
import re
import sys
from timeit import default_timer

import mwparserfromhell
from bs4 import BeautifulSoup

from .processor import process_article
from .rewrite import (
    PAGENAME_PARAMETERS,
    REMOVE_PARAMETERS,
    RENAME_MAP,
    REQUEST_OLDID,
    TARGET_TEMPLATE,
    TEMPLATE_ALIASES,
    RewriteRule,
)

if os.getenv("WPF_DEBUG", "false").lower() == "true":
    from multiprocessing.dummy import Process, Queue

    def cpu_count():
        return 1


else:
    from multiprocessing import Process, Queue, cpu_count


logger = logging.getLogger(__name__)


# Program version
version = "0.1.0"

TAG_RE = re.compile(r"(.*?)<(/?\w+)[^>]*>(?:([^<]*)(<.*?>)?)?")
#                    1     2               3      4

HEADER = "<mediawiki>\n"
FOOTER = "</mediawiki>\n"

# ------------------------------------------------------------------------------
# Input / Output


def decode_open(filename, mode="rt", encoding="utf-8"):
    """
    Open a file, decode and decompress, depending on extension `gz`, or 'bz2`.
    """
    if filename == "-":
        return sys.stdin
    ext = os.path.splitext(filename)[1]
    if ext == ".gz":
        return gzip.open(filename, mode, encoding=encoding)
    if ext == ".bz2":
        return bz2.open(filename, mode=mode, encoding=encoding)
    return open(filename, mode, encoding=encoding)


def encode_open(filename, mode="wt", encoding="utf-8"):
    """
    Open a file for writing, compressed depending on extension `gz`, or 'bz2`.
    """
    if filename == "-":
        return sys.stdout
    return decode_open(filename, mode, encoding)


def read_pages(input_source):  # noqa: C901 # pylint: disable=R0912
    """
    :param input_source: lines of a MediaWiki XML dump.
    :return: an iterator of (id, title, namespace, text), redirects excluded.
    """
    page = []
    page_id = None
    title = ""
    namespace = 0
    in_text = False
    redirect = False
    for line in input_source:
        if "<" not in line:  # faster than doing re.search()
            if in_text:
                page.append(line)
            continue
        m = TAG_RE.search(line)
        if not m:
            continue
        tag = m.group(2)
        if tag == "page":
            page = []
            page_id = None
            namespace = 0
            redirect = False
        elif tag == "id" and not page_id:
            page_id = m.group(3)
        elif tag == "title":
            title = html.unescape(m.group(3))
        elif tag == "ns":
            namespace = int(m.group(3))
        elif tag == "redirect":
            redirect = True
        elif tag == "text":
            if line.rstrip().endswith("/>"):  # empty
                continue
            in_text = True
            line = line[m.start(3) : m.end(3)]
            page.append(line)
            if m.lastindex == 4:  # open-close
                in_text = False
        elif tag == "/text":
            if m.group(1):
                page.append(m.group(1))
            in_text = False
        elif in_text:
            page.append(line)
        elif tag == "/page":
            if not redirect:
                yield page_id, title, namespace, html.unescape("".join(page))
            else:
                logger.debug("Ignoring redirect %s", title)
            page = []


def read_export(file_handle):
    """
    :param file_handle: a Special:Export XML file.
    :return: the list of (id, title, namespace, text) of its pages.
    """
    xml_parser = BeautifulSoup(file_handle.read(), "xml")
    pages = []
    for page in xml_parser.find_all("page"):
        title = page.find("title")
        if title is None:
            raise ValueError("Missing title element")
        page_id = page.find("id")
        namespace = page.find("ns")
        text = page.find("text")
        pages.append(
            (
                page_id.text if page_id is not None else None,
                title.text,
                int(namespace.text) if namespace is not None else 0,
                text.text if text is not None else "",
            )
        )
    return pages


def format_page(page_id, title, namespace, text, summary):
    return (
        "  <page>\n"
        "    <title>%s</title>\n"
        "    <ns>%d</ns>\n"
        "    <id>%s</id>\n"
        "    <comment>%s</comment>\n"
        '    <text xml:space="preserve">%s</text>\n'
        "  </page>\n"
    ) % (
        html.escape(title, quote=False),
        namespace,
        page_id or "",
        html.escape(summary, quote=False),
        html.escape(text, quote=False),
    )


def rewrite_page(page_id, title, namespace, text, rule):
    """
    :return: the formatted page when it is edited, None when it is skipped.
    """
    try:
        new_text, summary, skip = process_article(text, title, namespace, rule)
    except mwparserfromhell.parser.ParserError:
        logger.warning("Could not parse templates in article '%s' (%s)", title, page_id)
        return None
    if skip:
        return None
    logger.debug("Edited %s\t%s", page_id, title)
    return format_page(page_id, title, namespace, new_text, summary)


def process_dump(input_file, out_file, rule, process_count):  # pylint: disable=R0914
    """
    :param input_file: name of the wikipedia dump file; '-' to read from stdin
    :param out_file: file where to write edited pages, or '-' for stdout
    :param rule: the RewriteRule to apply.
    :param process_count: number of processes to spawn.
    """
    input_source = decode_open(input_file)

    logger.info("Starting page processing from %s.", input_file)
    start = default_timer()

    # Parallel Map/Reduce:
    # - pages to be processed are dispatched to workers
    # - a reduce process collects the results, sort them and print them.

    maxsize = 10 * process_count
    # output queue
    output_queue = Queue(maxsize=maxsize)

    # Reduce job that sorts and prints output
    reduce_job = Process(target=reduce_process, args=(output_queue, out_file))
    reduce_job.start()

    # initialize jobs queue
    jobs_queue = Queue(maxsize=maxsize)

    # start worker processes
    logger.info("Using %d rewrite processes.", process_count)
    workers = []
    for _ in range(max(1, process_count)):
        worker = Process(target=rewrite_process, args=(jobs_queue, output_queue, rule))
        worker.daemon = True  # only live while parent process lives
        worker.start()
        workers.append(worker)

    # Mapper
    ordinal = 0  # page count
    for page_id, title, namespace, text in read_pages(input_source):
        jobs_queue.put((page_id, title, namespace, text, ordinal))  # goes to any available rewrite_process
        ordinal += 1

    if input_source is not sys.stdin:
        input_source.close()

    # signal termination
    for _ in workers:
        jobs_queue.put(None)
    # wait for workers to terminate
    for w in workers:
        w.join()

    # signal end of work to reduce_job process
    output_queue.put(None)
    # wait for it to finish
    reduce_job.join()

    duration = default_timer() - start
    logger.info(
        "Finished %d-process rewrite of %d pages in %.1fs (%.1f pg/s)",
        process_count,
        ordinal,
        duration,
        ordinal / duration if duration else 0,
    )


# ----------------------------------------------------------------------
# Multiprocess support


def rewrite_process(jobs_queue, output_queue, rule):
    """Pull tuples of raw page content, rewrite the template, push the result
    :param jobs_queue: where to get jobs.
    :param output_queue: where to queue edited pages, None for skipped ones.
    """
    while True:
        job = jobs_queue.get()  # job is (id, title, namespace, text, ordinal)
        if job:
            page = rewrite_page(*job[:4], rule=rule)
            output_queue.put((job[4], page))  # (ordinal, formatted page or None)
        else:
            break


def reduce_process(output_queue, out_file):
    """Pull results, write edited pages in input order
    :param output_queue: pages to be output.
    :param out_file: file where to write edited pages, or '-' for stdout
    """
    output = encode_open(out_file)
    interval_start = default_timer()
    period = 100000
    ordering_buffer = {}  # collected pages
    next_ordinal = 0  # sequence number of pages
    edited = 0
    output.write(HEADER)
    while True:
        if next_ordinal in ordering_buffer:
            page = ordering_buffer.pop(next_ordinal)
            if page:
                output.write(page)
                edited += 1
            next_ordinal += 1
            # progress report
            if next_ordinal % period == 0:
                interval_rate = period / (default_timer() - interval_start)
                logger.info("Processed %d pages (%.1f pg/s)", next_ordinal, interval_rate)
                interval_start = default_timer()
        else:
            # mapper puts None to signal finish
            pair = output_queue.get()
            if not pair:
                break
            ordinal, page = pair
            ordering_buffer[ordinal] = page
    output.write(FOOTER)
    output.flush()
    if output is not sys.stdout:
        output.close()
    logger.info("Edited %d pages, skipped %d", edited, next_ordinal - edited)


def process_export(input_file, rule):
    """Rewrite the pages of a Special:Export file and print the result of each."""
    try:
        with open(input_file, encoding="utf-8") as file_handle:
            pages = read_export(file_handle)
    except (OSError, ValueError) as ex:
        logger.error("Could not read %s: %s", input_file, ex)
        return
    for page_id, title, namespace, text in pages:
        try:
            new_text, summary, skip = process_article(text, title, namespace, rule)
        except mwparserfromhell.parser.ParserError:
            logger.warning("Could not parse templates in article '%s' (%s)", title, page_id)
            continue
        if skip:
            print("Skipped: %s" % title)
            continue
        print("== %s ==" % title)
        print("Summary: %s" % summary)
        print(new_text)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog=os.path.basename(sys.argv[0]), formatter_class=argparse.RawDescriptionHelpFormatter, description=__doc__
    )
    parser.add_argument("input", help="XML wiki dump file, or '-' for stdin")
    output_group = parser.add_argument_group("Output")
    output_group.add_argument(
        "-o", "--output", default="-", help="file for edited pages, compressed if .gz or .bz2 (default: stdout)"
    )

    rule_group = parser.add_argument_group("Rule")
    rule_group.add_argument("--template", default=TARGET_TEMPLATE, help="template to rewrite (default %(default)s)")
    rule_group.add_argument(
        "--aliases", default=",".join(TEMPLATE_ALIASES), metavar="t1,t2", help="redirects to the template"
    )
    rule_group.add_argument(
        "--remove", default=",".join(REMOVE_PARAMETERS), metavar="p1,p2", help="parameters always removed"
    )
    rule_group.add_argument(
        "--pagename",
        default=",".join(PAGENAME_PARAMETERS),
        metavar="p1,p2",
        help="parameters removed when equal to the page name without disambiguator",
    )
    rule_group.add_argument(
        "--rename",
        default=",".join("%s=%s" % item for item in RENAME_MAP.items()),
        metavar="old=new,...",
        help="parameters to rename",
    )
    rule_group.add_argument("--oldid", default=REQUEST_OLDID, help="revision of the bot request, for the summary")
    rule_group.add_argument(
        "--keep-first-duplicate", action="store_true", help="keep the first of repeated parameters instead of the last"
    )

    default_process_count = max(1, cpu_count() - 1)
    parser.add_argument(
        "--processes", type=int, default=default_process_count, help="Number of processes to use (default %(default)s)"
    )

    special_group = parser.add_argument_group("Special")
    special_group.add_argument("-q", "--quiet", action="store_true", help="suppress reporting progress info")
    special_group.add_argument("--debug", action="store_true", help="print debug info")
    special_group.add_argument(
        "-a", "--article", action="store_true", help="input is a Special:Export file, print the results (debug option)"
    )
    special_group.add_argument(
        "-v", "--version", action="version", version="%(prog)s " + version, help="print program version"
    )

    args = parser.parse_args(argv)

    try:
        rule = RewriteRule.from_args(args)
    except ValueError as ex:
        parser.error(str(ex))

    FORMAT = "%(levelname)s: %(message)s"
    logging.basicConfig(format=FORMAT)

    package_logger = logging.getLogger(__package__)
    if not args.quiet:
        package_logger.setLevel(logging.INFO)
    if args.debug:
        package_logger.setLevel(logging.DEBUG)

    if args.article:
        process_export(args.input, rule)
        return

    if args.input != "-" and not os.path.exists(args.input):
        logger.error("No such file: %s", args.input)
        return

    process_dump(args.input, args.output, rule, args.processes)


if __name__ == "__main__":
    main()
