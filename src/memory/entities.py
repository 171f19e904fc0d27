"""Entity models for the library database."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Universe(BaseModel):
    """A top-level world that owns containers and stories."""

    id: str
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class Container(BaseModel):
    """An organizational node (series, novel, collection, ...) in a universe."""

    id: str
    universe_id: str
    parent_container_id: str | None = None
    container_type: str  # series, novel, collection, volume, ...
    title: str
    description: str | None = None
    order: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    # Only populated on subtree results (root = 0)
    depth: int | None = None


class ActivePointers(BaseModel):
    """The (version, snapshot) pair a story is currently viewing."""

    model_config = ConfigDict(frozen=True)

    version_id: str | None = None
    snapshot_id: str | None = None

    @property
    def is_initialized(self) -> bool:
        """Whether both pointers are set."""
        return self.version_id is not None and self.snapshot_id is not None


class Story(BaseModel):
    """A unit of written content with its own version history."""

    id: str
    universe_id: str
    container_id: str | None = None
    title: str
    description: str = ""
    story_type: str = "chapter"  # chapter, short-story, scene, episode, poem, ...
    status: str = "draft"  # draft, in-progress, completed, published, archived
    word_count: int = 0
    target_word_count: int | None = None
    order: int = 0
    variation_group_id: str
    variation_type: str = "original"
    parent_variation_id: str | None = None
    active_version_id: str | None = None
    active_snapshot_id: str | None = None
    last_edited_at: datetime = Field(default_factory=datetime.now)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def pointers(self) -> ActivePointers:
        """Active version/snapshot pair as an immutable value."""
        return ActivePointers(
            version_id=self.active_version_id, snapshot_id=self.active_snapshot_id
        )


class StoryVersion(BaseModel):
    """A named branch of a story's content history."""

    id: str
    story_id: str
    name: str  # Original, Alternate Ending, Director's Cut, ...
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class StorySnapshot(BaseModel):
    """A point-in-time save of content within a version."""

    id: str
    version_id: str
    content: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class ContainerChildren(BaseModel):
    """Direct children of a container: its sub-containers and its stories."""

    containers: list[Container] = Field(default_factory=list)
    stories: list[Story] = Field(default_factory=list)


class IntegrityIssue(BaseModel):
    """A single invariant violation found by the integrity audit."""

    kind: str  # dangling_pointer, pointer_mismatch, no_versions, depth, leaf_protection, cycle
    subject_id: str
    message: str
