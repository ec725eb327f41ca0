from __future__ import annotations

import zlib
from typing import Callable, Dict, Iterable, Optional, Tuple

HashFunction = Callable[[str], int]


def crc32(value: str) -> int:
    """Default name hash; generated code uses it as a stable numeric id."""
    return zlib.crc32(value.encode("utf-8")) & 0xFFFFFFFF


def find_hash_collision(
    names: Iterable[str], hash_function: HashFunction = crc32
) -> Optional[Tuple[str, str, int]]:
    """Return the first pair of different names sharing a hash, if any."""
    seen: Dict[int, str] = {}
    for name in names:
        value = hash_function(name)
        other = seen.setdefault(value, name)
        if other != name:
            return other, name, value
    return None
