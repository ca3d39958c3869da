"""Counted label forest built from '/'-delimited label names."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from email_sync_engine.models import LabelInfo, LabelNode, Message

logger = structlog.get_logger()

SYSTEM_LABELS = frozenset(
    {
        "CHAT",
        "CATEGORY_FORUMS",
        "CATEGORY_UPDATES",
        "CATEGORY_PROMOTIONS",
        "CATEGORY_SOCIAL",
        "CATEGORY_PERSONAL",
        "UNREAD",
        "IMPORTANT",
        "DRAFT",
        "SENT",
        "SPAM",
        "TRASH",
        "STARRED",
        "Blocked",
    }
)

INBOX_PREFIX = "INBOX/"

DEFAULT_TOP_N = 12


def is_system_label(label: LabelInfo) -> bool:
    return (
        label.type == "system"
        or label.id in SYSTEM_LABELS
        or label.name in SYSTEM_LABELS
        or label.name.startswith("CATEGORY_")
    )


def filter_user_labels(labels: Iterable[LabelInfo]) -> dict[str, str]:
    """Map label id to display name for user-visible labels only."""

    return {label.id: label.name for label in labels if not is_system_label(label)}


def aggregate_by_label(messages: Iterable[Message]) -> dict[str, set[str]]:
    """Map each label id to the distinct thread ids carrying it."""

    label_threads: dict[str, set[str]] = {}
    for message in messages:
        for label_id in message.label_ids:
            label_threads.setdefault(label_id, set()).add(message.thread_id)
    return label_threads


def _normalize_path(name: str) -> str:
    if name.lower() == "inbox":
        return ""
    if name.startswith(INBOX_PREFIX):
        name = name[len(INBOX_PREFIX) :]
    return name


def _sort_by_count(nodes: list[LabelNode]) -> list[LabelNode]:
    nodes.sort(key=lambda n: n.count, reverse=True)
    for node in nodes:
        _sort_by_count(node.children)
    return nodes


def build_label_tree(
    label_names: Mapping[str, str],
    label_threads: Mapping[str, set[str]],
    top_n: int = DEFAULT_TOP_N,
) -> list[LabelNode]:
    """Build the counted label forest and return its top `top_n` roots.

    A node's count is the number of distinct threads carrying its own label
    plus the counts of all its children. Prefixes without a label of their
    own become synthesized internal nodes. Siblings are ordered by descending
    count; ties keep their input order.

    Args:
        label_names: Label id to '/'-delimited display name.
        label_threads: Label id to the distinct thread ids observed with it.
        top_n: Number of root nodes to return. Subtrees are never truncated.
    """

    path_to_node: dict[str, LabelNode] = {}

    for label_id, threads in label_threads.items():
        name = label_names.get(label_id)
        if not name:
            continue
        path = _normalize_path(name)
        if not path or path in path_to_node:
            continue
        parts = path.split("/")
        path_to_node[path] = LabelNode(
            label_id=label_id,
            name=parts[-1],
            full_path=path,
            count=len(threads),
            is_leaf=True,
            depth=len(parts) - 1,
        )

    for path in list(path_to_node):
        parts = path.split("/")
        for i in range(1, len(parts)):
            prefix = "/".join(parts[:i])
            if prefix not in path_to_node:
                path_to_node[prefix] = LabelNode(
                    label_id=None,
                    name=parts[i - 1],
                    full_path=prefix,
                    count=0,
                    is_leaf=False,
                    depth=i - 1,
                )

    # Deepest nodes first so every child total is final before it moves up.
    for node in sorted(path_to_node.values(), key=lambda n: n.depth, reverse=True):
        if node.depth == 0:
            continue
        parent = path_to_node[node.full_path.rsplit("/", 1)[0]]
        parent.children.append(node)
        parent.is_leaf = False
        parent.count += node.count

    roots = [node for node in path_to_node.values() if node.depth == 0]
    _sort_by_count(roots)

    logger.debug("label_tree_built", nodes=len(path_to_node), roots=len(roots), top_n=top_n)
    return roots[:top_n]
