"""Default normalization pass run over every assembled snapshot.

The hydrator accepts any ``Callable[[StateSnapshot], StateSnapshot]`` as its
cleaner; :func:`clean_state` is the one used when none is injected. It is
pure and total for snapshot shapes the assembler produces:

- content entries that are not mappings are dropped;
- index keys pointing at dropped or missing content are removed;
- empty community entries are removed.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pagestate.core.contracts.state import DiscussionIndex, StateSnapshot

StateCleaner = Callable[[StateSnapshot], StateSnapshot]


def clean_state(snapshot: StateSnapshot) -> StateSnapshot:
    """Return a normalized copy of ``snapshot``; the input is left untouched."""
    content: dict[str, Any] = {
        key: dict(record)
        for key, record in snapshot.content.items()
        if isinstance(record, Mapping)
    }

    discussion_idx: DiscussionIndex = {
        tag: {sort: [key for key in keys if key in content] for sort, keys in sorts.items()}
        for tag, sorts in snapshot.discussion_idx.items()
    }

    community = {name: info for name, info in snapshot.community.items() if info}

    return snapshot.model_copy(
        update={
            "content": content,
            "discussion_idx": discussion_idx,
            "community": community,
        }
    )


__all__ = ["StateCleaner", "clean_state"]
