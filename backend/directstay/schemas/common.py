"""Small response schemas shared by several routers."""

from pydantic import BaseModel


class CountResponse(BaseModel):
    """Number of rows an operation changed."""

    count: int
