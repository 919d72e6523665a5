from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from votes_api.models import AUTHOR_MAX_LENGTH, TEXT_MAX_LENGTH


# --- Comment ---

class CommentCreate(BaseModel):
    """Comment submission body: ``{"autor", "texto", "userId"}``."""

    author: str = Field(alias="autor", min_length=1, max_length=AUTHOR_MAX_LENGTH)
    text: str = Field(alias="texto", min_length=1, max_length=TEXT_MAX_LENGTH)
    user_id: str = Field(alias="userId", min_length=1)
    model_config = ConfigDict(populate_by_name=True)

    @field_validator("author", "text", mode="before")
    @classmethod
    def _strip(cls, value):
        # Length limits apply to the trimmed value.
        if isinstance(value, str):
            return value.strip()
        return value


class NewComment(BaseModel):
    """A validated comment ready to be stored."""

    id: int
    author: str
    text: str
    user_id: str
    submitted_at: datetime
    origin_ip: str | None = None


# --- Vote ---

class VoteCreate(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    model_config = ConfigDict(populate_by_name=True)


# --- Store results ---

class WriteResult(BaseModel):
    """Outcome of a conditional write, mirroring matched/modified counts."""

    matched: int
    modified: int
    duplicate: bool = False
