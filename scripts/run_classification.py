#!/usr/bin/env python3
"""Generate an HTML land-cover classification report from an LAI raster.

This script clusters the raster cells by their seasonal profile and
writes a self-contained HTML report with the cluster map, seasonal
curves and per-cluster summary. Optionally it also writes an
interactive Leaflet map.

Usage:
    python run_classification.py --input lai_2020.nc --clusters 4 --output report.html

Example:
    python run_classification.py --demo --clusters 3 --map clusters.html
"""

from __future__ import annotations

import argparse
import base64
import html
import logging
import sys
import tempfile
from datetime import datetime
from pathlib import Path

# Check imports before running
try:
    import phenocluster as pc
except ImportError:
    print("Error: phenocluster not installed. Run: pip install -e .")
    sys.exit(1)


def encode_image_base64(path: Path) -> str:
    """Read image file and return base64 encoded string."""
    with open(path, "rb") as f:
        return base64.b64encode(f.read()).decode("utf-8")


def resolve_output_path(path: str, output_dir: Path) -> Path:
    """Place relative *path* under *output_dir* and create its directory."""
    resolved = Path(path).expanduser()
    if not resolved.is_absolute():
        resolved = output_dir / resolved
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def generate_html_report(
    source: str | Path | pc.RasterCube,
    n_clusters: int,
    output_path: Path,
    variable: str | None = None,
    map_path: Path | None = None,
    config: pc.Config | None = None,
) -> pc.ClassificationResult:
    """Classify *source* and write the HTML report.

    Args:
        source: Raster path or an in-memory cube.
        n_clusters: Number of k-means clusters.
        output_path: Path for the HTML report.
        variable: NetCDF data variable to read.
        map_path: Optional path for the interactive Leaflet map.
        config: Optional configuration override.

    Returns:
        The classification result shown in the report.
    """
    source_name = "in-memory cube" if isinstance(source, pc.RasterCube) else str(source)
    print(f"Classifying {source_name} into {n_clusters} clusters...")

    result = pc.classify(source, n_clusters, variable=variable, config=config)
    profiles = pc.seasonality(source, result, variable=variable, config=config)
    summary = result.to_dataframe()

    with tempfile.TemporaryDirectory() as tmp:
        temp_dir = Path(tmp)
        map_png = result.to_png(temp_dir / "clusters.png")
        map_b64 = encode_image_base64(map_png)
        profile_png = profiles.to_png(temp_dir / "profiles.png")
        profile_b64 = encode_image_base64(profile_png)

    if map_path is not None and result.cluster_sizes:
        result.to_html_map(map_path)
        print(f"  Interactive map: {map_path.absolute()}")

    meta = result.metadata
    report_time = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    period = f"{meta.layers[0]} → {meta.layers[-1]}" if meta.layers else "N/A"
    share = meta.valid_cells / meta.total_cells if meta.total_cells else 0.0

    table_html = summary.to_html(
        index=False,
        float_format=lambda v: f"{v:.2f}",
        classes="summary",
        border=0,
    )
    warnings_html = "".join(
        f'<div class="warning-box">{html.escape(w)}</div>' for w in result.warnings
    )

    report = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Land Cover Classification - {html.escape(meta.source)}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            color: #333;
            max-width: 1100px;
            margin: 0 auto;
            padding: 20px;
            background: #f5f5f5;
        }}
        .report {{ background: white; border-radius: 8px; overflow: hidden; }}
        .header {{
            background: linear-gradient(135deg, #2c5530 0%, #4a7c59 100%);
            color: white;
            padding: 30px;
            text-align: center;
        }}
        .section {{ padding: 25px 30px; border-bottom: 1px solid #eee; }}
        .section h2 {{ color: #2c5530; font-size: 20px; }}
        .metrics {{
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(180px, 1fr));
            gap: 15px;
        }}
        .metric {{ background: #f8f9fa; padding: 15px; border-radius: 6px; text-align: center; }}
        .metric .value {{ font-size: 26px; font-weight: bold; color: #2c5530; }}
        .metric .label {{ font-size: 12px; color: #666; text-transform: uppercase; }}
        .chart {{ width: 100%; margin: 20px auto; display: block; }}
        table.summary {{ width: 100%; border-collapse: collapse; }}
        table.summary th, table.summary td {{ padding: 6px 8px; border-bottom: 1px solid #eee; }}
        .warning-box {{
            background: #fff3cd;
            border-left: 4px solid #ffc107;
            padding: 12px 15px;
            margin: 10px 0;
        }}
        .footer {{ text-align: center; padding: 20px; color: #666; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="report">
        <div class="header">
            <h1>Land Cover Classification Report</h1>
            <div>{html.escape(meta.source)} | {meta.variable} | {period}</div>
        </div>

        <div class="section">
            <h2>Summary</h2>
            <div class="metrics">
                <div class="metric">
                    <div class="value">{result.n_clusters}</div>
                    <div class="label">Clusters</div>
                </div>
                <div class="metric">
                    <div class="value">{len(meta.layers)}</div>
                    <div class="label">Time Layers</div>
                </div>
                <div class="metric">
                    <div class="value">{share:.0%}</div>
                    <div class="label">Complete Cells</div>
                </div>
                <div class="metric">
                    <div class="value">{result.confidence:.2f}</div>
                    <div class="label">Confidence</div>
                </div>
            </div>
            {warnings_html}
        </div>

        <div class="section">
            <h2>Cluster Map</h2>
            <img class="chart" src="data:image/png;base64,{map_b64}" alt="Cluster map">
            {table_html}
        </div>

        <div class="section">
            <h2>Seasonal Profiles</h2>
            <img class="chart" src="data:image/png;base64,{profile_b64}" alt="Profiles">
        </div>

        <div class="footer">
            <p>Generated with phenocluster v{pc.__version__}</p>
            <p>Report Time: {report_time}</p>
        </div>
    </div>
</body>
</html>
"""

    output_path.write_text(report, encoding="utf-8")
    print(f"\n[OK] Report saved to: {output_path.absolute()}")
    return result


def main() -> None:
    """Parse arguments and run the classification."""
    parser = argparse.ArgumentParser(
        description="Generate an HTML land-cover classification report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_classification.py --input lai_2020.nc --clusters 4 -o report.html
  python run_classification.py --demo --clusters 3 --map clusters.html
        """,
    )
    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument(
        "-i",
        "--input",
        type=str,
        help="Raster file (.nc, .tif or .npz) with one layer per time step",
    )
    input_group.add_argument(
        "--demo",
        action="store_true",
        help="Use a synthetic three-cover LAI raster",
    )
    parser.add_argument(
        "-k",
        "--clusters",
        type=int,
        default=None,
        help="Number of clusters (default: from configuration, 5)",
    )
    parser.add_argument(
        "--variable",
        type=str,
        default=None,
        help="NetCDF data variable to classify (optional)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON configuration file (default: $PHENOCLUSTER_CONFIG)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default="report.html",
        help=(
            "Output HTML file; relative paths go under the configured "
            "output_dir (default: report.html)"
        ),
    )
    parser.add_argument(
        "--map",
        type=str,
        default=None,
        help="Also write an interactive Leaflet map to this HTML file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.clusters is not None and args.clusters < 1:
        print(f"Error: Clusters must be at least 1, got {args.clusters}.")
        sys.exit(1)

    try:
        from phenocluster.config import get_default_config, resolve_config_path

        if args.config:
            config = pc.load_config(args.config)
        else:
            config_path = resolve_config_path()
            config = pc.load_config(config_path) if config_path else get_default_config()
        n_clusters = args.clusters or config.n_clusters
        source: str | pc.RasterCube = pc.synthetic_lai_cube() if args.demo else args.input

        generate_html_report(
            source=source,
            n_clusters=n_clusters,
            output_path=resolve_output_path(args.output, config.output_dir),
            variable=args.variable,
            map_path=resolve_output_path(args.map, config.output_dir) if args.map else None,
            config=config,
        )
    except pc.PhenoClusterError as e:
        print(f"\nError generating report: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
