from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Tuple


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from an exported model's `metadata.yaml`.

    Only the `names:` block is read:

        names:
          0: person
          1: bicycle
          ...

    Parsed by hand so the package does not need PyYAML.
    """

    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Class-name metadata not found: {path}")

    names: Dict[int, str] = {}
    in_names = False

    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # A new top-level key ends the block.
            if not raw.startswith((" ", "\t")):
                break
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def class_names_from_mapping(mapping: Mapping[int, str]) -> Tuple[str, ...]:
    """
    Turn an {id: name} mapping into the ordered class table.

    Ids must be exactly 0..N-1.
    """

    if not mapping:
        raise ValueError("No class names found")
    ids = sorted(mapping)
    if ids != list(range(len(ids))):
        raise ValueError(f"Class ids must be contiguous from 0, got {ids[:5]}...")
    return tuple(mapping[i] for i in ids)
