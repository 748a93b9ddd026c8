# =============================================================================
# src/cli/documents.py - CLI Document Commands
# =============================================================================
#
# Standalone CLI over DocumentService: upload files into a scope, search a
# scope, inspect and delete documents, and reprocess a stored upload.
#
# Supported subcommands:
#
#   upload    - Upload one or more files into a scope and run the pipeline
#   search    - Semantic search over a scope's documents
#   list      - List a scope's documents with state and chunk counts
#   show      - Print one document's record as JSON
#   delete    - Delete a document, its chunks, vectors and raw upload
#   reprocess - Re-run the pipeline on a stored upload (new revision)
#
# Logs go to stderr; command output goes to stdout.
#
# Usage examples:
#   python -m src.cli.documents upload --scope chat-42 report.pdf notes.md
#   python -m src.cli.documents search --scope chat-42 "quarterly revenue"
#   python -m src.cli.documents list --scope chat-42
#   python -m src.cli.documents reprocess 1b4e...
# =============================================================================

"""Command-line front door for uploading and searching documents.

Usage::

    python -m src.cli.documents upload --scope chat-42 report.pdf
    python -m src.cli.documents search --scope chat-42 "quarterly revenue" --limit 3
    python -m src.cli.documents list --scope chat-42
    python -m src.cli.documents show <document_id>
    python -m src.cli.documents delete <document_id>
    python -m src.cli.documents reprocess <document_id>
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from src.config.settings import Settings
from src.models.document import Document, ProcessingState, UploadedFile
from src.services.document_service import DocumentService
from src.utils.errors import DocumentPipelineError
from src.utils.logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.documents",
        description="Upload, search and manage documents.",
    )
    subparsers = parser.add_subparsers(dest="command")

    upload = subparsers.add_parser("upload", help="Upload files into a scope")
    upload.add_argument("files", nargs="+", help="Paths of files to upload")
    upload.add_argument("--scope", required=True, help="Conversation or workspace id")
    upload.add_argument("--content-type", default="", help="Override the guessed MIME type")

    search = subparsers.add_parser("search", help="Search a scope's documents")
    search.add_argument("query", help="Search query")
    search.add_argument("--scope", required=True)
    search.add_argument("--limit", type=int, default=None)

    listing = subparsers.add_parser("list", help="List a scope's documents")
    listing.add_argument("--scope", required=True)

    show = subparsers.add_parser("show", help="Show one document as JSON")
    show.add_argument("document_id")

    delete = subparsers.add_parser("delete", help="Delete a document")
    delete.add_argument("document_id")

    reprocess = subparsers.add_parser("reprocess", help="Reprocess a stored upload")
    reprocess.add_argument("document_id")

    return parser


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_upload(args: argparse.Namespace, service: DocumentService) -> int:
    exit_code = 0
    for raw_path in args.files:
        path = Path(raw_path)
        if not path.is_file():
            print(f"Error: {path} is not a file", file=sys.stderr)
            exit_code = 1
            continue
        content_type = args.content_type or mimetypes.guess_type(path.name)[0] or ""
        document = await service.upload_document(
            UploadedFile(filename=path.name, content_type=content_type, data=path.read_bytes()),
            args.scope,
        )
        _print_document_line(document)
        if document.processing_state == ProcessingState.FAILED:
            print(f"  Error: {document.error}")
            exit_code = 1
    return exit_code


async def _handle_search(args: argparse.Namespace, service: DocumentService) -> int:
    hits = await service.search_documents(args.query, args.scope, limit=args.limit)
    if not hits:
        print("No relevant documents found.")
        return 0
    for rank, hit in enumerate(hits, start=1):
        page = hit.chunk.metadata.page_number or "N/A"
        print(f"{rank}. {hit.document_name} (page {page}, score {hit.score:.4f})")
        print(f"   {_preview(hit.chunk.content)}")
    return 0


async def _handle_list(args: argparse.Namespace, service: DocumentService) -> int:
    documents = await service.list_documents(args.scope)
    if not documents:
        print(f"No documents in scope '{args.scope}'.")
        return 0
    for document in documents:
        _print_document_line(document)
        if document.error:
            print(f"  Error: {document.error}")
    return 0


async def _handle_show(args: argparse.Namespace, service: DocumentService) -> int:
    document = await service.get_document(args.document_id)
    print(document.model_dump_json(indent=2))
    return 0


async def _handle_delete(args: argparse.Namespace, service: DocumentService) -> int:
    document = await service.delete_document(args.document_id)
    print(f"Deleted {document.id} ({document.filename})")
    return 0


async def _handle_reprocess(args: argparse.Namespace, service: DocumentService) -> int:
    document = await service.reprocess_document(args.document_id)
    _print_document_line(document)
    if document.processing_state == ProcessingState.FAILED:
        print(f"  Error: {document.error}")
        return 1
    return 0


_HANDLERS = {
    "upload": _handle_upload,
    "search": _handle_search,
    "list": _handle_list,
    "show": _handle_show,
    "delete": _handle_delete,
    "reprocess": _handle_reprocess,
}


def _print_document_line(document: Document) -> None:
    index = document.index_report.status.value if document.index_report else "-"
    print(
        f"{document.id}  {document.filename}  {document.processing_state.value}  "
        f"chunks={document.chunk_count}  index={index}  rev={document.revision}"
    )


def _preview(text: str, width: int = 160) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= width else flat[: width - 3] + "..."


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred: building components pulls in chromadb and the embedding stack.
    from src.main import build_components, close_components, initialize_components

    components = build_components(app_settings)
    await initialize_components(components)
    try:
        return await _HANDLERS[args.command](args, components["document_service"])
    except DocumentPipelineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await close_components(components)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    return asyncio.run(_run(args, app_settings))


if __name__ == "__main__":
    sys.exit(main())
