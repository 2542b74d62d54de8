"""
File API models.
"""
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileMeta(BaseModel):
    """Response body of a successful upload."""

    model_config = ConfigDict(populate_by_name=True)

    id: Annotated[
        Optional[str],
        Field(alias="_id", description="Backend-assigned identifier, null for the filesystem backend"),
    ] = None
    name: Annotated[
        str,
        Field(alias="Name", description="Name the object was stored under"),
    ]
