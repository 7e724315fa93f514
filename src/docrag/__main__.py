"""Command-line entry point.

Ingest a file or web page and print the grounding context for questions::

    python -m docrag ask --file report.pdf "Who is eligible?"
    python -m docrag ask --url https://example.org/scheme "What is the deadline?" --top-k 5
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from docrag.config import settings
from docrag.errors import RagError
from docrag.ingestion.loader import load_file_text
from docrag.service import RagService

_DOCUMENT_ID = 1


async def _ask(args: argparse.Namespace) -> int:
    service = RagService.from_settings(settings)
    if args.url:
        text = await service.ingest_url(_DOCUMENT_ID, args.url)
    else:
        text = load_file_text(args.file)
        await service.ingest_document(_DOCUMENT_ID, text)

    for question in args.questions:
        context = await service.build_context(_DOCUMENT_ID, question, text, top_k=args.top_k)
        mode = "retrieved" if context.used_retrieval else "fallback"
        scores = ", ".join(f"{s:.3f}" for s in context.scores)
        print(f"Q: {question}  [{mode}{': ' + scores if scores else ''}]")
        print(context.text)
        print()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="docrag", description="Document-grounded retrieval")
    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="Ingest a document and retrieve context for questions")
    src = ask.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", help="PDF, HTML or text file to ingest")
    src.add_argument("--url", help="Web page to fetch and ingest")
    ask.add_argument("questions", nargs="+", help="Questions to answer from the document")
    ask.add_argument("--top-k", type=int, default=None, help="Chunks per question")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        return asyncio.run(_ask(args))
    except RagError as exc:
        logging.getLogger("docrag").error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
