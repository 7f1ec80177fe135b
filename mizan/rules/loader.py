"""Load rule packs from YAML or JSON files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from mizan.errors import ValidationError
from mizan.rules.models import RuleDraft
from mizan.rules.store import validate_draft


DATA_DIR = Path(__file__).parent / "data"


def demo_pack_path() -> Path:
    """Path to the bundled demo rule pack."""
    return DATA_DIR / "demo.yaml"


def load_rule_pack(path: str | Path) -> list[RuleDraft]:
    """Load and validate rule drafts from a YAML (or JSON) file.

    The file holds either a list of rules or a mapping with a ``rules`` list.
    Any ``id`` in the file is dropped; the store assigns ids on load.

    Raises:
        FileNotFoundError: if the file does not exist
        ValidationError: if the file or any rule in it is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rule pack not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            content = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValidationError(f"Rule pack is not valid YAML: {path}") from exc

    return parse_rule_pack(content)


def parse_rule_pack(content: Any) -> list[RuleDraft]:
    """Validate already-parsed rule pack content."""
    if content is None:
        return []
    if isinstance(content, dict):
        content = content.get("rules", [])
    if not isinstance(content, list):
        raise ValidationError("Rule pack must be a list of rules or a mapping with 'rules'")

    drafts = []
    for index, item in enumerate(content):
        if not isinstance(item, dict):
            raise ValidationError(f"Rule #{index} is not a mapping", {"index": index})
        item = {key: value for key, value in item.items() if key != "id"}
        try:
            drafts.append(validate_draft(item))
        except ValidationError as exc:
            raise ValidationError(f"Rule #{index} is invalid", {"index": index, **exc.details}) from exc
    return drafts
