"""Request body base that rejects unknown fields."""

from pydantic import BaseModel, ConfigDict


class StrictRequestModel(BaseModel):
    """
    Write payloads never accept server-owned fields such as price, status or
    commission; anything not declared on the model is a validation error.
    """

    model_config = ConfigDict(extra="forbid")
