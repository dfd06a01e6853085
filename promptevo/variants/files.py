"""Storage utilities for variant files.

A variant file is YAML (or JSON, which YAML accepts) holding a top-level
``variants`` list of variant configurations.
"""

from pathlib import Path

import yaml
from pydantic import ValidationError

from promptevo.core.exceptions import InvalidArgumentError

from .memory import InMemoryVariantRegistry
from .models import Variant


def load_variants_file(path: Path) -> InMemoryVariantRegistry:
    """Load a variant file into an in-memory registry.

    Args:
        path: Path to the variant file.

    Returns:
        Registry holding every variant in the file.

    Raises:
        OSError: If the file cannot be read.
        InvalidArgumentError: If the file is not a valid variant file.
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise InvalidArgumentError(f"Invalid YAML in {path}: {e}") from e

    raw = data.get("variants", []) if isinstance(data, dict) else data
    if not isinstance(raw, list):
        raise InvalidArgumentError(f"{path}: 'variants' must be a list")

    try:
        variants = [Variant.model_validate(item) for item in raw]
    except ValidationError as e:
        raise InvalidArgumentError(f"Invalid variant in {path}: {e}") from e

    return InMemoryVariantRegistry(variants)


def save_variants_file(registry: InMemoryVariantRegistry, path: Path) -> None:
    """Write every variant in a registry back to a variant file.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    document = {
        "variants": [v.model_dump(mode="json") for v in registry.list_variants()]
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False, allow_unicode=True)
