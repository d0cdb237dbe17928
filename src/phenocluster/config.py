"""Configuration management for phenocluster.

A frozen ``Config`` holds clustering and rendering defaults. Callers
either pass a ``Config`` explicitly or rely on the module-level default
set with ``configure()``.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from phenocluster.exceptions import ConfigurationError

logger = logging.getLogger("phenocluster")

_CONFIG_ENV_VAR = "PHENOCLUSTER_CONFIG"
_DEFAULT_CONFIG_PATH = Path("~/.phenocluster/config.json")


class Config(BaseModel):
    """Library configuration model.

    Immutable pydantic model storing clustering and rendering settings.
    Each classification captures the ``Config`` active when it starts,
    so later ``configure()`` calls never affect a running analysis.

    Args:
        n_clusters: Default number of k-means clusters.
        random_state: Seed passed to k-means (``None`` for random).
        n_init: Number of k-means restarts with different centroids.
        max_iter: Maximum k-means iterations per restart.
        standardize: Z-score each time layer before clustering.
        min_valid_fraction: Valid-cell fraction considered adequate.
        min_cluster_cells: Clusters smaller than this trigger a warning.
        colormap: Matplotlib colormap used for cluster colours.
        basemap_tiles: Folium tile set drawn under the cluster overlay.
        default_crs: CRS assumed for rasters that carry none.
        output_dir: Directory used by the report script for outputs.

    Example:
        >>> cfg = Config(n_clusters=4, standardize=True)
        >>> cfg.default_crs
        'EPSG:4326'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    n_clusters: int = 5
    random_state: int | None = 42
    n_init: int = 10
    max_iter: int = 300
    standardize: bool = False
    min_valid_fraction: float = 0.5
    min_cluster_cells: int = 10
    colormap: str = "tab10"
    basemap_tiles: str = "OpenStreetMap"
    default_crs: str = "EPSG:4326"
    output_dir: Path = Path("outputs")

    @field_validator("output_dir", mode="before")
    @classmethod
    def _expand_output_dir(cls, v: str | Path) -> Path:
        """Expand ``~`` in output directory path."""
        return Path(v).expanduser()

    @field_validator("n_clusters", "n_init", "max_iter")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        """Ensure iteration and cluster counts are at least 1."""
        if v < 1:
            msg = "value must be at least 1"
            raise ValueError(msg)
        return v

    @field_validator("min_cluster_cells")
    @classmethod
    def _validate_min_cluster_cells(cls, v: int) -> int:
        if v < 0:
            msg = "min_cluster_cells must not be negative"
            raise ValueError(msg)
        return v

    @field_validator("min_valid_fraction")
    @classmethod
    def _validate_fraction(cls, v: float) -> float:
        """Ensure the fraction lies in (0, 1]."""
        if not 0.0 < v <= 1.0:
            msg = "min_valid_fraction must be in (0, 1]"
            raise ValueError(msg)
        return v

    @field_validator("default_crs")
    @classmethod
    def _validate_crs(cls, v: str) -> str:
        """Ensure CRS matches EPSG format."""
        if not re.match(r"^EPSG:\d+$", v):
            msg = "default_crs must match 'EPSG:<number>' format"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``n_clusters``,
            ``random_state``, ``colormap``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(n_clusters=3, standardize=True)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)


def get_default_config() -> Config:
    """Return the current module-level default configuration.

    Returns:
        The active ``Config`` instance.
    """
    return _default_config


def resolve_config_path(explicit: Path | str | None = None) -> Path | None:
    """Resolve the configuration file path.

    Resolution order:
        1. *explicit* argument (highest priority)
        2. ``PHENOCLUSTER_CONFIG`` environment variable
        3. Default ``~/.phenocluster/config.json``

    Args:
        explicit: An explicit path given by the caller.

    Returns:
        Resolved ``Path``, or ``None`` if no file exists at the
        selected location.
    """
    if explicit is not None:
        path = Path(explicit).expanduser()
    elif os.environ.get(_CONFIG_ENV_VAR):
        path = Path(os.environ[_CONFIG_ENV_VAR]).expanduser()
    else:
        path = _DEFAULT_CONFIG_PATH.expanduser()

    if not path.exists():
        logger.debug("No configuration file at %s", path)
        return None
    return path


def load_config(path: Path | str) -> Config:
    """Load a ``Config`` from a JSON file.

    Keys absent from the file keep their ``Config`` defaults.

    Args:
        path: Absolute or ``~``-expanded path to the JSON file.

    Returns:
        Validated ``Config``.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not a
            JSON object, or contains invalid settings.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(
            what="Cannot read configuration file",
            cause=f"File not found: {resolved}",
            fix=(
                f"Create {resolved} with phenocluster settings, "
                f"or set the {_CONFIG_ENV_VAR} environment variable"
            ),
        ) from None
    except PermissionError:
        raise ConfigurationError(
            what="Cannot read configuration file",
            cause=f"Permission denied: {resolved}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            what="Invalid configuration file format",
            cause=f"JSON parse error in {resolved}: {exc}",
            fix='Ensure the file contains valid JSON, e.g. {"n_clusters": 4}',
        ) from None

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            what="Invalid configuration file format",
            cause=f"Expected a JSON object in {resolved}, got {type(parsed).__name__}",
            fix='Ensure the file contains a JSON object, e.g. {"n_clusters": 4}',
        )

    try:
        config = Config(**parsed)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise ConfigurationError(
            what="Invalid configuration settings",
            cause=f"Rejected fields in {resolved}: {fields}",
            fix="Check field names and value ranges against phenocluster.Config",
        ) from exc

    logger.info("Loaded configuration from %s", resolved)
    return config
