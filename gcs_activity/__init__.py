"""
GCS Activity - a workflow activity for Google Cloud Storage objects.

This package contains the complete activity:
- core: Framework-agnostic activity logic (operations, write modes, ACLs)
- infrastructure: Google Cloud Storage client and in-memory mock
- host: Activity metadata and the host context contract
- api: FastAPI host binding
- config: Application configuration
"""

__version__ = "0.3.0"
