"""
Bulk registration of URL data sources from a configuration mapping.

The mapping has one entry per data source, keyed by the name the data will be
read and observed under::

    weather:
      format: json
      url: https://example.com/weather.json
    headlines:
      format: plist
      url: https://example.com/headlines.plist
      interval: 300

The default mapping lives in ``config/fundament.yml`` (or ``.json``) and is
loaded at start-up by ``Fundament.from_settings`` when it exists.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class URLSourceConfig(BaseModel):
    """
    Configuration for one URL data source.
    """

    url: str = Field(..., description="URL to download the data from")
    format: str = Field(default="json", description="Format tag of the response")
    interval: Optional[float] = Field(
        None, gt=0, description="Refresh interval in seconds"
    )

    model_config = {"extra": "allow"}

    @field_validator("format")
    @classmethod
    def normalise_format(cls, v):
        return v.strip().lower()


def load_default_config(path: Path) -> Dict[str, Any]:
    """
    Load a data source mapping from a YAML or JSON file.

    Args:
        path: Configuration file; ``.json`` files are read as JSON, anything
              else as YAML

    Returns:
        The mapping, or an empty dict when the file does not exist

    Raises:
        ValueError: If the file does not contain a mapping
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No data source config at {path}")
        return {}

    with path.open("r", encoding="utf-8") as fh:
        if path.suffix.lower() == ".json":
            cfg = json.load(fh)
        else:
            cfg = yaml.safe_load(fh)

    if cfg is None:
        return {}
    if not isinstance(cfg, dict):
        raise ValueError(f"Data source config {path} must contain a mapping")

    logger.info("Loaded %d data source definitions from %s", len(cfg), path)
    return cfg


def parse_source(entry: Mapping[str, Any]) -> URLSourceConfig:
    """
    Validate one mapping entry.

    Raises:
        pydantic.ValidationError: If the entry has no url or an invalid interval
    """
    return URLSourceConfig.model_validate(dict(entry))


def register_sources(engine, mapping: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    """
    Register every entry of ``mapping`` as a URL data source on ``engine``.

    Invalid entries are logged and skipped.

    Returns:
        Dictionary mapping each name to its registered key, or None when the
        entry could not be registered
    """
    results: Dict[str, Optional[str]] = {}

    for name, entry in mapping.items():
        try:
            config = parse_source(entry)
        except (TypeError, ValueError) as e:
            logger.error("Invalid data source config '%s': %s", name, e)
            results[name] = None
            continue

        try:
            results[name] = engine.add_url_data_source(
                config.url, config.format, interval=config.interval, key=name
            )
        except ValueError as e:
            logger.error("Cannot register data source '%s': %s", name, e)
            results[name] = None

    registered = sum(1 for key in results.values() if key)
    logger.info(f"Registered {registered}/{len(results)} data sources")
    return results
