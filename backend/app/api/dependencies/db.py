"""Request-scoped access to the import runtime."""

from fastapi import Request

from app.services.import_runtime import ImportRuntime


def get_runtime(request: Request) -> ImportRuntime:
    """FastAPI dependency returning the runtime created by the app factory."""
    return request.app.state.runtime
