"""
Route dependencies
"""
from fastapi import Request

from triage_desk.container import Container


def get_container(request: Request) -> Container:
    """Container built by the app lifespan"""
    return request.app.state.container
