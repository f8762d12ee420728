#!/usr/bin/env python3
"""
Command-line script to fetch a document and show what the query layer sees.

Settings come from HTTPDOC_* environment variables or a .env file;
HTTPDOC_LOG_LEVEL sets the log level when --verbose is not given.

Usage:
    python run_fetch.py https://go.dev/
    python run_fetch.py https://go.dev/ --links --forms
    python run_fetch.py https://pkg.go.dev/about --submit 0 -p q=sha256
    python run_fetch.py https://go.dev/ --text -o page.txt
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from httpdoc import ClientConfig, Document, HttpDocError, LoadError
from httpdoc.logger import level_from_env, setup_logger


def describe(doc: Document, args) -> dict:
    result = {
        "url": str(doc.url),
        "status": doc.status_code,
        "content_type": doc.content_type(),
        "charset": doc.charset(),
        "title": doc.title(),
    }
    if args.links:
        result["links"] = [
            {"href": link.attr("href"), "text": link.inner_text()}
            for link in doc.links()
        ]
    if args.forms:
        result["forms"] = [
            {
                "action": form.attr("action"),
                "method": form.attr("method") or "get",
                "params": [list(pair) for pair in form.form_params().multi_items()],
            }
            for form in doc.forms()
        ]
    if args.text:
        body = doc.elements_by_tag_name("body").first()
        result["text"] = body.inner_text() if body is not None else doc.text()
    return result


def main():
    parser = argparse.ArgumentParser(
        description="Fetch an HTTP document and print its title, links and forms"
    )
    parser.add_argument("url", help="Absolute URL to fetch")
    parser.add_argument("--links", "-l", action="store_true", help="List <a> links")
    parser.add_argument("--forms", "-f", action="store_true", help="List forms and their fields")
    parser.add_argument("--text", "-t", action="store_true", help="Include the page text")
    parser.add_argument(
        "--submit", "-s", type=int, metavar="N",
        help="Submit the N-th form and describe the resulting document"
    )
    parser.add_argument(
        "--param", "-p", action="append", default=[], metavar="NAME=VALUE",
        help="Parameter to set on the submitted form (repeatable)"
    )
    parser.add_argument("--output", "-o", help="Output file (default: print to stdout)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    try:
        setup_logger(level=logging.DEBUG if args.verbose else level_from_env(logging.WARNING))
    except HttpDocError as e:
        print(f"✗ Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    try:
        doc = Document(args.url, config=ClientConfig.from_env())

        if args.submit is not None:
            form = doc.forms().eq(args.submit)
            if form is None:
                print(f"✗ No form #{args.submit} on {doc.url}", file=sys.stderr)
                sys.exit(1)
            doc = form.doc()
            for pair in args.param:
                name, _, value = pair.partition("=")
                doc.set_param(name, value)

        result = describe(doc, args)

    except LoadError as e:
        print(f"✗ Load failed: {e.message}", file=sys.stderr)
        sys.exit(2)
    except HttpDocError as e:
        print(f"✗ Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    output_json = json.dumps(result, indent=2, ensure_ascii=False)

    if args.output:
        Path(args.output).write_text(output_json)
        print(f"Saved to: {args.output}", file=sys.stderr)
    else:
        print(output_json)


if __name__ == "__main__":
    main()
