"""phenocluster exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class PhenoClusterError(Exception):
    """Base exception for all phenocluster errors.

    All phenocluster exceptions use a three-part message pattern
    providing structured error context for developers.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise PhenoClusterError(
        ...     what="Classification failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        """Initialize with structured error context.

        Args:
            what: Description of what failed.
            cause: Likely cause of the failure.
            fix: Suggested action to resolve the issue.
        """
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts.

        Returns:
            Formatted message with optional Cause and Fix lines.
        """
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(PhenoClusterError):
    """Raised for configuration file and settings errors.

    Example:
        >>> raise ConfigurationError(
        ...     what="Cannot read configuration file",
        ...     cause="File not found: ~/.phenocluster/config.json",
        ...     fix="Create the file or set PHENOCLUSTER_CONFIG",
        ... )
    """


class RasterError(PhenoClusterError):
    """Raised when a raster cannot be loaded, saved, or is malformed.

    Example:
        >>> raise RasterError(
        ...     what="Cannot load raster",
        ...     cause="Unsupported file suffix '.jpg'",
        ...     fix="Use a NetCDF (.nc), GeoTIFF (.tif) or .npz file",
        ... )
    """


class ClusteringError(PhenoClusterError):
    """Raised when clustering inputs are unusable.

    Example:
        >>> raise ClusteringError(
        ...     what="Cannot run k-means",
        ...     cause="3 valid cells for 5 clusters",
        ...     fix="Reduce n_clusters or supply a larger raster",
        ... )
    """
