"""Backend utilities for the FileTrans file repository.

This package keeps FastAPI route handlers thin:
- sandboxed path resolution for every client-supplied path
- directory listing, folder creation and deletion
- upload ingestion into nested sub-paths
- streaming ZIP creation for folder and multi-item downloads

Security note:
There is no authentication. Anyone who can reach the server can read and
modify everything under the storage root, so only expose it on trusted
networks and never log or return absolute filesystem paths.
"""
