from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class QueuedResponse(BaseModel):
    queued: bool


class PeekedMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_text: str
    inserted_on: Optional[datetime] = None


class ErrorResponse(BaseModel):
    error: str
