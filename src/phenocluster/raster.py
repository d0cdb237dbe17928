"""Multi-temporal raster cubes and their serialized forms.

A ``RasterCube`` holds one value per cell per time layer, e.g. monthly
LAI composites. Cubes are read from NetCDF (xarray), GeoTIFF stacks
(rasterio, one band per layer) or ``.npz`` archives, and written back
to NetCDF or ``.npz``.

Example:
    >>> from phenocluster.raster import load_cube
    >>> cube = load_cube("lai_2020.nc", variable="LAI")
    >>> cube.shape
    (12, 40, 60)
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from phenocluster.exceptions import RasterError

if TYPE_CHECKING:
    from phenocluster._types import Bounds, LayerList

logger = logging.getLogger(__name__)

_NETCDF_SUFFIXES: frozenset[str] = frozenset({".nc", ".nc4", ".netcdf"})
_GEOTIFF_SUFFIXES: frozenset[str] = frozenset({".tif", ".tiff"})
_NPZ_SUFFIX = ".npz"
_NETCDF_ENGINE = "h5netcdf"

# Preferred data variables when a NetCDF file holds several.
_VARIABLE_CANDIDATES: tuple[str, ...] = ("LAI", "lai", "ndvi", "NDVI")

# Coordinates that may carry a CF grid mapping.
_GRID_MAPPING_NAMES: tuple[str, ...] = ("spatial_ref", "crs")

_Y_DIMS: tuple[str, ...] = ("y", "lat", "latitude")
_X_DIMS: tuple[str, ...] = ("x", "lon", "longitude")

_SUPPORTED_FIX = "Use a NetCDF (.nc), GeoTIFF (.tif/.tiff) or numpy archive (.npz)"


@dataclass
class RasterCube:
    """Multi-temporal raster grid.

    Attributes:
        values: Float array shaped ``(layers, rows, cols)``. Missing
            cells are NaN. A 2-D array is promoted to one layer.
        layers: One label per layer (ISO dates or free strings).
            Generated as ``layer_1 ...`` when empty.
        x: Cell-centre x coordinates, one per column.
        y: Cell-centre y coordinates, one per row. Grids given with
            increasing ``y`` are flipped so row 0 is the northern edge.
        crs: Coordinate reference system (e.g. ``"EPSG:4326"``).
        variable: Name of the measured quantity.

    Raises:
        RasterError: If the array is not 2-D/3-D or labels and
            coordinates do not match the grid.

    Example:
        >>> import numpy as np
        >>> cube = RasterCube(values=np.ones((12, 4, 5)))
        >>> cube.valid_count
        20
    """

    values: npt.NDArray[np.floating[Any]]
    layers: LayerList = field(default_factory=list)
    x: npt.NDArray[np.floating[Any]] | None = None
    y: npt.NDArray[np.floating[Any]] | None = None
    crs: str = "EPSG:4326"
    variable: str = "LAI"

    def __post_init__(self) -> None:
        values = np.asarray(self.values)
        if values.ndim == 2:
            values = values[np.newaxis, :, :]
        if values.ndim != 3:
            raise RasterError(
                what="Invalid raster cube",
                cause=f"Expected a (layers, rows, cols) array, got {values.ndim}-D",
                fix="Pass a 3-D array, or a 2-D array for a single layer",
            )
        if values.shape[0] == 0:
            raise RasterError(
                what="Invalid raster cube",
                cause="The array has no layers",
                fix="Pass at least one time layer",
            )
        if not np.issubdtype(values.dtype, np.floating):
            values = values.astype(np.float64)
        self.values = values

        n_layers, height, width = values.shape

        if self.layers:
            self.layers = [str(label) for label in self.layers]
        else:
            self.layers = [f"layer_{i + 1}" for i in range(n_layers)]
        if len(self.layers) != n_layers:
            raise RasterError(
                what="Invalid raster cube",
                cause=f"{len(self.layers)} layer labels for {n_layers} layers",
                fix="Provide exactly one label per layer",
            )

        if self.x is None:
            self.x = np.arange(width, dtype=np.float64) + 0.5
        if self.y is None:
            self.y = height - 0.5 - np.arange(height, dtype=np.float64)
        self.x = np.asarray(self.x, dtype=np.float64)
        self.y = np.asarray(self.y, dtype=np.float64)
        if self.x.shape != (width,) or self.y.shape != (height,):
            raise RasterError(
                what="Invalid raster cube",
                cause=(
                    f"Coordinate lengths x={self.x.size}, y={self.y.size} "
                    f"do not match grid {height}x{width}"
                ),
                fix="Provide one x per column and one y per row",
            )

        # Store rows north-up (decreasing y).
        if height > 1 and self.y[-1] > self.y[0]:
            self.values = self.values[:, ::-1, :].copy()
            self.y = self.y[::-1].copy()

    @property
    def shape(self) -> tuple[int, int, int]:
        """``(layers, rows, cols)``."""
        n_layers, height, width = self.values.shape
        return (n_layers, height, width)

    @property
    def n_layers(self) -> int:
        return int(self.values.shape[0])

    @property
    def height(self) -> int:
        return int(self.values.shape[1])

    @property
    def width(self) -> int:
        return int(self.values.shape[2])

    @property
    def resolution(self) -> tuple[float, float]:
        """Cell size ``(dx, dy)`` in CRS units (1.0 along a single-cell axis)."""
        x, y = np.asarray(self.x), np.asarray(self.y)
        dx = float(abs(x[1] - x[0])) if self.width > 1 else 1.0
        dy = float(abs(y[1] - y[0])) if self.height > 1 else 1.0
        return (dx, dy)

    @property
    def bounds(self) -> Bounds:
        """Outer cell edges as ``{"minx", "miny", "maxx", "maxy"}``."""
        x, y = np.asarray(self.x), np.asarray(self.y)
        dx, dy = self.resolution
        return {
            "minx": float(x.min()) - dx / 2,
            "miny": float(y.min()) - dy / 2,
            "maxx": float(x.max()) + dx / 2,
            "maxy": float(y.max()) + dy / 2,
        }

    @property
    def valid_mask(self) -> npt.NDArray[np.bool_]:
        """``(rows, cols)`` mask, ``True`` where every layer is finite."""
        mask: npt.NDArray[np.bool_] = np.all(np.isfinite(self.values), axis=0)
        return mask

    @property
    def valid_count(self) -> int:
        """Number of cells finite in every layer."""
        return int(np.count_nonzero(self.valid_mask))

    @classmethod
    def from_dataarray(
        cls,
        da: xr.DataArray,
        crs: str | None = None,
        default_crs: str | None = None,
    ) -> RasterCube:
        """Build a cube from an xarray ``DataArray``.

        The array needs two spatial dimensions (``y``/``x`` or
        ``lat``/``lon``) and at most one other dimension, which becomes
        the layer axis. Datetime layer coordinates are formatted as
        ``YYYY-MM-DD``.

        Args:
            da: Source array.
            crs: CRS override. Defaults to ``da.attrs["crs"]``, then the
                ``spatial_ref`` coordinate, then *default_crs*, then the
                configured default.
            default_crs: Fallback used when the array carries no CRS.

        Returns:
            A new ``RasterCube``.

        Raises:
            RasterError: If spatial dimensions are missing or the array
                has more than three dimensions.
        """
        y_dim = next((d for d in _Y_DIMS if d in da.dims), None)
        x_dim = next((d for d in _X_DIMS if d in da.dims), None)
        if y_dim is None or x_dim is None:
            raise RasterError(
                what="Cannot interpret array as a raster",
                cause=f"No spatial dimensions among {list(da.dims)}",
                fix="Name the spatial dimensions 'y'/'x' or 'lat'/'lon'",
            )

        if da.ndim == 2:
            da = da.expand_dims("layer")
        if da.ndim != 3:
            raise RasterError(
                what="Cannot interpret array as a raster",
                cause=f"Expected one layer dimension, got dims {list(da.dims)}",
                fix="Select or stack extra dimensions before loading",
            )

        layer_dim = next(d for d in da.dims if d not in (y_dim, x_dim))
        da = da.transpose(layer_dim, y_dim, x_dim)

        layers: list[str] = []
        if layer_dim in da.coords:
            raw = np.asarray(da[layer_dim].values)
            if np.issubdtype(raw.dtype, np.datetime64):
                layers = pd.DatetimeIndex(raw).strftime("%Y-%m-%d").tolist()
            else:
                layers = [str(v) for v in raw]

        return cls(
            values=np.asarray(da.values, dtype=np.float64),
            layers=layers,
            x=np.asarray(da[x_dim].values, dtype=np.float64),
            y=np.asarray(da[y_dim].values, dtype=np.float64),
            crs=crs or _crs_from_attrs(da, default_crs),
            variable=str(da.name) if da.name is not None else "LAI",
        )

    def to_dataarray(self) -> xr.DataArray:
        """Return the cube as a ``("layer", "y", "x")`` ``DataArray``."""
        return xr.DataArray(
            self.values,
            dims=("layer", "y", "x"),
            coords={"layer": self.layers, "y": self.y, "x": self.x},
            name=self.variable,
            attrs={"crs": self.crs},
        )


def _crs_from_attrs(da: xr.DataArray, default: str | None = None) -> str:
    """Read the CRS of *da*, else a default.

    Looks at ``da.attrs["crs"]``, then the CF / rioxarray grid-mapping
    coordinate (``crs_wkt`` or ``spatial_ref`` attribute). WKT is
    reduced to ``EPSG:<code>`` where an EPSG code matches.
    """
    from phenocluster.config import get_default_config

    crs = da.attrs.get("crs")
    if isinstance(crs, str) and crs:
        return crs

    mapping_names = [
        da.encoding.get("grid_mapping"),
        da.attrs.get("grid_mapping"),
        *_GRID_MAPPING_NAMES,
    ]
    for name in mapping_names:
        if not name or name not in da.coords:
            continue
        attrs = da.coords[name].attrs
        wkt = attrs.get("crs_wkt") or attrs.get("spatial_ref")
        if isinstance(wkt, str) and wkt:
            return _normalize_wkt(wkt)
    return default or get_default_config().default_crs


def _normalize_wkt(wkt: str) -> str:
    from rasterio.crs import CRS
    from rasterio.errors import CRSError

    try:
        epsg = CRS.from_wkt(wkt).to_epsg()
    except CRSError as exc:
        raise RasterError(
            what="Cannot read raster CRS",
            cause=f"Invalid WKT in grid mapping: {exc}",
            fix="Write the CRS as CF 'crs_wkt' or set crs= explicitly",
        ) from exc
    return f"EPSG:{epsg}" if epsg is not None else wkt


def _select_variable(ds: xr.Dataset, variable: str | None, path: Path) -> str:
    """Pick the data variable to load from *ds*."""
    names = [str(name) for name in ds.data_vars]
    if variable is not None:
        if variable not in names:
            raise RasterError(
                what=f"Cannot load variable '{variable}'",
                cause=f"{path.name} holds variables {names}",
                fix="Pass one of the listed names as variable=",
            )
        return variable
    if len(names) == 1:
        return names[0]
    for candidate in _VARIABLE_CANDIDATES:
        if candidate in names:
            return candidate
    raise RasterError(
        what="Cannot choose a data variable",
        cause=f"{path.name} holds {len(names)} variables: {names}",
        fix="Pass variable= to select one",
    )


def _load_netcdf(path: Path, variable: str | None) -> RasterCube:
    try:
        ds = xr.open_dataset(path, engine=_NETCDF_ENGINE, decode_coords="all")
    except (OSError, ValueError) as exc:
        raise RasterError(
            what="Cannot read NetCDF file",
            cause=f"{path}: {exc}",
            fix="Check that the file is a valid NetCDF dataset",
        ) from exc

    with ds:
        name = _select_variable(ds, variable, path)
        da = ds[name].load()
    return RasterCube.from_dataarray(da)


def _load_geotiff(path: Path, variable: str | None) -> RasterCube:
    import rasterio
    from rasterio.errors import RasterioIOError

    try:
        with rasterio.open(path) as src:
            data = src.read().astype(np.float64)
            nodata = src.nodata
            transform = src.transform
            epsg = src.crs.to_epsg() if src.crs else None
            wkt = src.crs.to_wkt() if src.crs else ""
            descriptions = list(src.descriptions)
    except RasterioIOError as exc:
        raise RasterError(
            what="Cannot read GeoTIFF file",
            cause=f"{path}: {exc}",
            fix="Check that the file is a valid GeoTIFF",
        ) from exc

    if nodata is not None and not np.isnan(nodata):
        data[data == nodata] = np.nan

    _, height, width = data.shape
    x = transform.c + (np.arange(width) + 0.5) * transform.a
    y = transform.f + (np.arange(height) + 0.5) * transform.e
    layers = [d if d else f"band_{i + 1}" for i, d in enumerate(descriptions)]

    if epsg is not None:
        crs = f"EPSG:{epsg}"
    elif wkt:
        crs = wkt
    else:
        from phenocluster.config import get_default_config

        crs = get_default_config().default_crs

    return RasterCube(
        values=data,
        layers=layers,
        x=x,
        y=y,
        crs=crs,
        variable=variable or "LAI",
    )


def _load_npz(path: Path) -> RasterCube:
    try:
        with np.load(path, allow_pickle=False) as archive:
            files = set(archive.files)
            values = archive["values"]
            layers = [str(v) for v in archive["layers"]] if "layers" in files else []
            x = archive["x"] if "x" in files else None
            y = archive["y"] if "y" in files else None
            crs = str(archive["crs"]) if "crs" in files else "EPSG:4326"
            variable = str(archive["variable"]) if "variable" in files else "LAI"
    except KeyError:
        raise RasterError(
            what="Cannot read raster archive",
            cause=f"{path.name} has no 'values' array",
            fix="Write archives with phenocluster.raster.save_cube()",
        ) from None
    except (OSError, ValueError, zipfile.BadZipFile) as exc:
        raise RasterError(
            what="Cannot read raster archive",
            cause=f"{path}: {exc}",
            fix="Check that the file is a valid numpy .npz archive",
        ) from exc

    return RasterCube(values=values, layers=layers, x=x, y=y, crs=crs, variable=variable)


def load_cube(path: str | Path, variable: str | None = None) -> RasterCube:
    """Load a multi-temporal raster from a serialized dataset.

    Args:
        path: NetCDF, GeoTIFF or ``.npz`` file.
        variable: Data variable to read from NetCDF files. For GeoTIFFs
            it only names the cube's variable.

    Returns:
        The loaded ``RasterCube``.

    Raises:
        RasterError: If the file is missing, has an unsupported suffix,
            or cannot be parsed.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise RasterError(
            what="Cannot load raster",
            cause=f"File not found: {path}",
            fix="Check the path to the raster file",
        )

    suffix = path.suffix.lower()
    if suffix in _NETCDF_SUFFIXES:
        cube = _load_netcdf(path, variable)
    elif suffix in _GEOTIFF_SUFFIXES:
        cube = _load_geotiff(path, variable)
    elif suffix == _NPZ_SUFFIX:
        cube = _load_npz(path)
    else:
        raise RasterError(
            what="Cannot load raster",
            cause=f"Unsupported file suffix '{path.suffix}'",
            fix=_SUPPORTED_FIX,
        )

    logger.info(
        "Loaded %s: %d layers of %s on a %dx%d grid",
        path.name,
        cube.n_layers,
        cube.variable,
        cube.height,
        cube.width,
    )
    return cube


def save_cube(cube: RasterCube, path: str | Path) -> Path:
    """Write *cube* to a NetCDF or ``.npz`` file.

    Args:
        cube: Cube to write.
        path: Destination; the suffix selects the format.

    Returns:
        Path object pointing to the written file.

    Raises:
        RasterError: For unsupported suffixes or write failures.
    """
    path = Path(path).expanduser()
    suffix = path.suffix.lower()

    try:
        if suffix in _NETCDF_SUFFIXES:
            ds = cube.to_dataarray().to_dataset(name=cube.variable)
            ds.to_netcdf(path, engine=_NETCDF_ENGINE)
        elif suffix == _NPZ_SUFFIX:
            np.savez_compressed(
                path,
                values=cube.values,
                layers=np.array(cube.layers, dtype=str),
                x=cube.x,
                y=cube.y,
                crs=np.array(cube.crs),
                variable=np.array(cube.variable),
            )
        else:
            raise RasterError(
                what="Cannot save raster",
                cause=f"Unsupported file suffix '{path.suffix}'",
                fix="Use a NetCDF (.nc) or numpy archive (.npz) path",
            )
    except OSError as exc:
        raise RasterError(
            what="Cannot save raster",
            cause=f"{path}: {exc}",
            fix="Check that the directory exists and is writable",
        ) from exc

    logger.debug("Saved %s cube to %s", cube.variable, path)
    return path
