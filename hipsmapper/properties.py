from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%MZ")


@dataclass
class HipsProperties:
    """Descriptive keywords of a HiPS ``properties`` manifest.

    Keywords without a dedicated field go to ``extra``.
    """

    creator_did: Optional[str] = None
    obs_title: Optional[str] = None
    obs_description: Optional[str] = None
    obs_collection: Optional[str] = None
    obs_ack: Optional[str] = None
    obs_copyright: Optional[str] = None
    obs_copyright_url: Optional[str] = None
    obs_regime: Optional[str] = None
    hips_creator: Optional[str] = None
    hips_copyright: Optional[str] = None
    hips_frame: Optional[str] = None
    hips_status: Optional[str] = None
    hips_release_date: Optional[str] = None
    dataproduct_type: Optional[str] = None
    dataproduct_subtype: Optional[str] = None
    extra: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, str]:
        values = {
            f.name: str(getattr(self, f.name))
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        values.update(self.extra)
        return values

    @classmethod
    def from_dict(cls, values: dict[str, str]) -> "HipsProperties":
        known = {f.name for f in fields(cls)} - {"extra"}
        return cls(
            **{key: value for key, value in values.items() if key in known},
            extra={key: value for key, value in values.items() if key not in known},
        )


def parse_properties(text: str) -> dict[str, str]:
    properties: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        properties[key.strip()] = value.strip()
    return properties


def read_properties(path: Path) -> dict[str, str]:
    logger.debug(f"Reading HiPS properties from {path}")
    return parse_properties(path.read_text(encoding="utf-8"))


def write_properties(path: Path, properties: dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    width = max((len(key) for key in properties), default=0)
    lines = [f"{key:<{width}} = {value}" for key, value in properties.items()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"Wrote {len(properties)} HiPS properties to {path}")
