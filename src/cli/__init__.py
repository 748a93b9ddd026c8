"""CLI tools for the document pipeline.

- ``python -m src.cli.documents`` - upload, search, list, show, delete and
  reprocess documents within a scope.

All CLI modules use argparse.  Heavy imports (chromadb, embedding models)
are deferred until a command actually runs.
"""
