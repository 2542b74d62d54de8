"""
FastAPI dependencies shared by the routers.

The repository and settings are created once per application and stored on
app.state; these dependencies hand them to endpoints explicitly.
"""
from typing import Annotated

from annotated_doc import Doc
from fastapi import Depends, Request

from api.config import Settings
from storage.repository import Repository


def get_repository(request: Request) -> Repository:
    """Get the process-wide storage repository."""
    return request.app.state.repository


def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


StorageRepository = Annotated[
    Repository,
    Depends(get_repository),
    Doc("Storage repository configured at startup"),
]

AppSettings = Annotated[
    Settings,
    Depends(get_app_settings),
    Doc("Application settings"),
]
