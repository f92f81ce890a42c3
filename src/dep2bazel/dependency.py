from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DependencyRecord:
    """One locked dependency as consumed by the resolution pipeline."""

    import_path: str
    revision: str
    source_url: Optional[str] = None
