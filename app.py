"""
App assembly entry point.

Re-exports the FastAPI `app` from `retailhub.api.main` so `uvicorn app:app`
keeps working from the repository root.
"""

from retailhub.api.main import app  # noqa: F401
