"""Command-line tools for PlantOps.

- ``python -m plantops.cli.ingest FILE...`` ingests local documents into
  the knowledge base through the same pipeline as the upload endpoint.
"""
