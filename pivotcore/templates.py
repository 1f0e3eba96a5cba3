"""Saved pivot templates.

A template stores a view's config and options (never a computed result) plus
an identifier of the dataset it was built against, so the editor can warn
when it is loaded over different data.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pivotcore.config import (
    PivotConfig,
    PivotOptions,
    PivotView,
    normalize_config,
    normalize_options,
)

logger = logging.getLogger(__name__)


def dataset_identifier(
    file_name: str,
    headers: Sequence[str],
    row_count: int,
    sheet_name: Optional[str] = None,
) -> str:
    return f"{file_name}-{sheet_name or 'default'}-{'|'.join(headers)}-{row_count}"


@dataclass(frozen=True)
class PivotTemplate:
    id: str
    name: str
    created_at: str
    dataset_identifier: str
    config: PivotConfig = PivotConfig()
    options: PivotOptions = PivotOptions()

    def matches(self, identifier: Optional[str]) -> bool:
        return identifier is not None and identifier == self.dataset_identifier

    def to_view(self, view_id: Optional[str] = None) -> PivotView:
        return PivotView(
            id=view_id or f"view-{uuid.uuid4().hex[:12]}",
            name=self.name,
            config=self.config,
            options=self.options,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "dataset_identifier": self.dataset_identifier,
            "config": self.config.to_dict(),
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "PivotTemplate":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            created_at=str(raw.get("created_at") or raw.get("createdAt") or ""),
            dataset_identifier=str(raw.get("dataset_identifier") or raw.get("associatedDataIdentifier") or ""),
            config=normalize_config(raw.get("config") or raw.get("pivotConfig")),
            options=normalize_options(raw.get("options") or raw.get("pivotOptions")),
        )


def new_template(
    name: str,
    dataset_id: str,
    config: PivotConfig,
    options: Optional[PivotOptions] = None,
) -> PivotTemplate:
    name = name.strip()
    if not name:
        raise ValueError("template name must not be empty")
    return PivotTemplate(
        id=f"pivot-{uuid.uuid4().hex[:12]}",
        name=name,
        created_at=datetime.now(timezone.utc).isoformat(),
        dataset_identifier=dataset_id,
        config=normalize_config(config),
        options=normalize_options(options),
    )


def template_fields(template: PivotTemplate) -> List[str]:
    config = template.config
    names = (
        [f.field for f in config.rows]
        + [f.field for f in config.columns]
        + [v.field for v in config.values]
        + [f.field for f in config.filters]
    )
    return list(dict.fromkeys(names))


def stale_fields(template: PivotTemplate, headers: Iterable[str]) -> List[str]:
    """Fields the template refers to that the current dataset does not have."""
    known = set(headers)
    missing = [name for name in template_fields(template) if name not in known]
    if missing:
        logger.info("template %s refers to %d unknown field(s): %s", template.id, len(missing), ", ".join(missing))
    return missing
