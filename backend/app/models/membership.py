"""
Membership scrub result model.
"""

from pydantic import BaseModel, Field


class ScrubResult(BaseModel):
    """Outcome of removing a departed user from every chat they joined."""

    user_id: str
    removed_chat_ids: list[str] = Field(default_factory=list)
    failed_chat_ids: list[str] = Field(default_factory=list)

    @property
    def matched(self) -> int:
        return len(self.removed_chat_ids) + len(self.failed_chat_ids)

    @property
    def is_complete(self) -> bool:
        return not self.failed_chat_ids
