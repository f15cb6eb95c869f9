import hashlib
import json
from typing import Any

SNAPSHOT_HASH_PREFIX = "sha256:"


def canonical_snapshot_json(snapshot: Any) -> str:
    """Key-sorted, whitespace-free JSON; dates and decimals are rendered with ``str``."""
    return json.dumps(
        snapshot, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def snapshot_hash(snapshot: Any) -> str:
    encoded = canonical_snapshot_json(snapshot).encode("utf-8")
    return SNAPSHOT_HASH_PREFIX + hashlib.sha256(encoded).hexdigest()
