"""NetworkX hierarchy graph and integrity audit for LibraryDatabase.

Graphs are built from the store on every call and never cached, so they always
reflect the latest committed state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import networkx as nx
from networkx import DiGraph

from src.memory.entities import IntegrityIssue
from src.utils.exceptions import NotFoundError

if TYPE_CHECKING:
    from . import LibraryDatabase

logger = logging.getLogger(__name__)


def build_hierarchy_graph(db: LibraryDatabase, universe_id: str) -> DiGraph[Any]:
    """Build a directed graph of a universe's containers and stories.

    Nodes carry ``kind`` ("universe", "container" or "story") plus title and order
    attributes. Edges point from parent to child; top-level containers and
    standalone stories hang off the universe node.

    Args:
        db: LibraryDatabase instance.
        universe_id: Universe to graph.

    Returns:
        A freshly built DiGraph.

    Raises:
        NotFoundError: If the universe does not exist.
    """
    from . import _containers, _stories, _universes

    with db.read_cursor():
        universe = _universes.get_universe(db, universe_id)
        if universe is None:
            raise NotFoundError("universe", universe_id)
        containers = _containers.list_containers(db, universe_id)
        stories = _stories.list_universe_stories(db, universe_id)

    graph: DiGraph[Any] = nx.DiGraph()
    graph.add_node(universe.id, kind="universe", title=universe.name)

    for container in containers:
        graph.add_node(
            container.id,
            kind="container",
            title=container.title,
            container_type=container.container_type,
            order=container.order,
        )
    for container in containers:
        parent = container.parent_container_id or universe.id
        graph.add_edge(parent, container.id)

    for story in stories:
        graph.add_node(
            story.id,
            kind="story",
            title=story.title,
            story_type=story.story_type,
            order=story.order,
            word_count=story.word_count,
        )
        graph.add_edge(story.container_id or universe.id, story.id)

    logger.debug(
        "Built hierarchy graph for universe %s: %d nodes, %d edges",
        universe_id,
        graph.number_of_nodes(),
        graph.number_of_edges(),
    )
    return graph


def check_integrity(db: LibraryDatabase) -> list[IntegrityIssue]:
    """Audit the whole library for hierarchy and pointer invariant violations.

    Checks, in order: container parent cycles, nesting depth, child containers
    created under a container that already held stories, stories without
    versions, and every story's active version/snapshot pair.

    Args:
        db: LibraryDatabase instance.

    Returns:
        List of issues found (empty for a consistent library).
    """
    issues: list[IntegrityIssue] = []
    with db.read_cursor() as cursor:
        cursor.execute("SELECT id, parent_container_id, created_at FROM containers")
        container_rows = cursor.fetchall()
        cursor.execute(
            """
            SELECT container_id, MIN(created_at) AS first_story_at
            FROM stories WHERE container_id IS NOT NULL
            GROUP BY container_id
            """
        )
        first_story_at = {row["container_id"]: row["first_story_at"] for row in cursor.fetchall()}
        cursor.execute("SELECT id, active_version_id, active_snapshot_id FROM stories")
        story_rows = cursor.fetchall()
        cursor.execute("SELECT id, story_id FROM story_versions")
        version_owner = {row["id"]: row["story_id"] for row in cursor.fetchall()}
        cursor.execute("SELECT id, version_id FROM story_snapshots")
        snapshot_owner = {row["id"]: row["version_id"] for row in cursor.fetchall()}

    issues.extend(_check_containers(container_rows, first_story_at))
    issues.extend(_check_story_pointers(story_rows, version_owner, snapshot_owner))

    if issues:
        logger.warning("Integrity audit found %d issues", len(issues))
    else:
        logger.info("Integrity audit passed")
    return issues


def _check_containers(
    container_rows: list[Any], first_story_at: dict[str, str]
) -> list[IntegrityIssue]:
    from . import MAX_NESTING_DEPTH

    issues: list[IntegrityIssue] = []
    graph: DiGraph[Any] = nx.DiGraph()
    created_at: dict[str, str] = {}
    for row in container_rows:
        graph.add_node(row["id"])
        created_at[row["id"]] = row["created_at"]
        if row["parent_container_id"] is not None:
            graph.add_edge(row["parent_container_id"], row["id"])

    in_cycle: set[str] = set()
    for cycle in nx.simple_cycles(graph):
        in_cycle.update(cycle)
        issues.append(
            IntegrityIssue(
                kind="cycle",
                subject_id=cycle[0],
                message=f"Container parent chain forms a cycle: {' -> '.join(cycle)}",
            )
        )

    for container_id in graph.nodes:
        if container_id in in_cycle:
            continue
        # Single-parent tree: the ancestor count is the depth
        depth = len(nx.ancestors(graph, container_id))
        if depth >= MAX_NESTING_DEPTH:
            issues.append(
                IntegrityIssue(
                    kind="depth",
                    subject_id=container_id,
                    message=f"Container depth {depth} reaches limit {MAX_NESTING_DEPTH}",
                )
            )

    for parent_id, stories_since in first_story_at.items():
        if parent_id not in graph:
            continue
        for child_id in graph.successors(parent_id):
            if created_at.get(child_id, "") > stories_since:
                issues.append(
                    IntegrityIssue(
                        kind="leaf_protection",
                        subject_id=child_id,
                        message=(
                            f"Child container {child_id} was added to {parent_id} "
                            "after it already held stories"
                        ),
                    )
                )
    return issues


def _check_story_pointers(
    story_rows: list[Any], version_owner: dict[str, str], snapshot_owner: dict[str, str]
) -> list[IntegrityIssue]:
    issues: list[IntegrityIssue] = []
    versions_per_story: dict[str, int] = {}
    for story_id in version_owner.values():
        versions_per_story[story_id] = versions_per_story.get(story_id, 0) + 1
    versions_with_snapshots = set(snapshot_owner.values())

    for row in story_rows:
        story_id = row["id"]
        version_id = row["active_version_id"]
        snapshot_id = row["active_snapshot_id"]

        if versions_per_story.get(story_id, 0) == 0:
            issues.append(
                IntegrityIssue(
                    kind="no_versions", subject_id=story_id, message="Story has no versions"
                )
            )
            continue

        if version_id is None or version_owner.get(version_id) != story_id:
            issues.append(
                IntegrityIssue(
                    kind="dangling_pointer",
                    subject_id=story_id,
                    message=f"Active version {version_id} does not resolve to a version of "
                    "this story",
                )
            )
            continue

        if snapshot_id is None:
            # Only acceptable when the active version genuinely has no snapshots
            if version_id in versions_with_snapshots:
                issues.append(
                    IntegrityIssue(
                        kind="dangling_pointer",
                        subject_id=story_id,
                        message=f"Active snapshot is unset but version {version_id} has snapshots",
                    )
                )
        elif snapshot_id not in snapshot_owner:
            issues.append(
                IntegrityIssue(
                    kind="dangling_pointer",
                    subject_id=story_id,
                    message=f"Active snapshot {snapshot_id} does not exist",
                )
            )
        elif snapshot_owner[snapshot_id] != version_id:
            issues.append(
                IntegrityIssue(
                    kind="pointer_mismatch",
                    subject_id=story_id,
                    message=(
                        f"Active snapshot {snapshot_id} belongs to version "
                        f"{snapshot_owner[snapshot_id]}, not active version {version_id}"
                    ),
                )
            )
    return issues
