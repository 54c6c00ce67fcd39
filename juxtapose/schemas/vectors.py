from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ItemVector(BaseModel):
    id: str
    number: int
    state: Literal["open", "closed"]
    vector: list[float]


class PullRequestVector(ItemVector):
    hash: str


class VectorObject(BaseModel):
    """The per-repository artifact; keyed maps are compared by key presence only."""

    model_config = ConfigDict(populate_by_name=True)

    repo: str
    synced_at: int = Field(alias="syncedAt")
    issues: dict[str, ItemVector] = Field(default_factory=dict)
    pull_requests: dict[str, PullRequestVector] = Field(default_factory=dict, alias="pullRequests")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "VectorObject":
        return cls.model_validate_json(payload)

    @classmethod
    def empty(cls, repo: str) -> "VectorObject":
        return cls(repo=repo, synced_at=0)
