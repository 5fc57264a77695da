"""Utilities for working with postal-code and district boundary datasets."""

from __future__ import annotations

import io
import json
import logging
import tempfile
import zipfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shapely.errors import GEOSException
from shapely.geometry import Point, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform
from shapely.prepared import prep

logger = logging.getLogger(__name__)

WGS84 = 'EPSG:4326'
POLYGONAL_TYPES = ('Polygon', 'MultiPolygon')


class InvalidGeometry(ValueError):
    """A source geometry that cannot take part in point-in-polygon tests."""


def load_features(path: Path) -> List[Dict[str, Any]]:
    """
    Load GeoJSON-style features from a GeoJSON file or a Shapefile.

    Shapefiles may be given directly (`.shp` with its sidecar files) or as a
    `.zip` archive containing one.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == '.zip':
        return _features_from_shapefile_zip(path.read_bytes())
    if suffix == '.shp':
        return _features_from_shapefile(path)

    logger.info("Loading boundaries from %s", path)
    with path.open('r', encoding='utf-8') as geojson_file:
        data = json.load(geojson_file)

    features = data.get('features', [])
    if not features:
        logger.warning("Boundary dataset at %s contains no features", path)
    return features


def _features_from_shapefile(shp_path: Path) -> List[Dict[str, Any]]:
    import shapefile  # pyshp

    logger.info("Converting Shapefile %s", shp_path)
    reader = shapefile.Reader(str(shp_path))
    try:
        return [
            {
                'type': 'Feature',
                'geometry': shape_rec.shape.__geo_interface__,
                'properties': shape_rec.record.as_dict(),
            }
            for shape_rec in reader.shapeRecords()
        ]
    finally:
        reader.close()


def _features_from_shapefile_zip(data: bytes) -> List[Dict[str, Any]]:
    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir_path = Path(tmpdir)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            shp_files = [name for name in archive.namelist() if name.lower().endswith('.shp')]
            if not shp_files:
                raise ValueError('No .shp file found in ZIP archive')

            shp_file = shp_files[0]
            base_name = Path(shp_file).stem
            for member in archive.namelist():
                if Path(member).stem == base_name:
                    archive.extract(member, tmpdir_path)

        return _features_from_shapefile(tmpdir_path / shp_file)


@lru_cache(maxsize=16)
def _transformer_to_wgs84(source_crs: str):
    from pyproj import Transformer

    return Transformer.from_crs(source_crs, WGS84, always_xy=True)


def to_wgs84(geometry: BaseGeometry, source_crs: Optional[str]) -> BaseGeometry:
    """Reproject a geometry into WGS84 lon/lat unless it already is."""
    if not source_crs or source_crs.upper() == WGS84:
        return geometry
    transformer = _transformer_to_wgs84(source_crs.upper())
    return transform(transformer.transform, geometry)


def parse_polygon(geometry_mapping: Optional[Dict[str, Any]], source_crs: Optional[str] = None) -> BaseGeometry:
    """
    Build a valid (multi)polygon from a GeoJSON geometry mapping.

    Raises InvalidGeometry for missing, non-polygonal, empty, unparsable or
    self-intersecting geometries. Invalid geometries are not repaired.
    """
    if not geometry_mapping:
        raise InvalidGeometry('missing geometry')

    geometry_type = geometry_mapping.get('type')
    if geometry_type not in POLYGONAL_TYPES:
        raise InvalidGeometry(f'unsupported geometry type {geometry_type}')

    try:
        geometry = shape(geometry_mapping)
    except (GEOSException, ValueError, TypeError, KeyError, IndexError, AttributeError) as exc:
        raise InvalidGeometry(f'unparsable geometry: {exc}') from exc

    if geometry.is_empty:
        raise InvalidGeometry('empty geometry')
    if not geometry.is_valid:
        raise InvalidGeometry('self-intersecting or otherwise invalid geometry')

    return to_wgs84(geometry, source_crs)


@dataclass
class BoundaryFeature:
    """Represents a single boundary feature with prepared geometry."""

    properties: Dict[str, Any]
    geometry: BaseGeometry
    minx: float
    miny: float
    maxx: float
    maxy: float
    prepared_geometry: Any

    def contains(self, point: Point) -> bool:
        if point.x < self.minx or point.x > self.maxx:
            return False
        if point.y < self.miny or point.y > self.maxy:
            return False
        return self.prepared_geometry.contains(point)

    def overlaps_bounds(self, bounds: Tuple[float, float, float, float]) -> bool:
        minx, miny, maxx, maxy = bounds
        return not (maxx < self.minx or minx > self.maxx or maxy < self.miny or miny > self.maxy)


class BoundaryIndex:
    """Ordered index over district polygon features; earlier features win ties."""

    def __init__(self, features: Iterable[Dict[str, Any]], source_crs: Optional[str] = None):
        self._features: List[BoundaryFeature] = []
        self.invalid_count = 0

        for position, feature in enumerate(features):
            properties = feature.get('properties') or {}
            try:
                geometry = parse_polygon(feature.get('geometry'), source_crs)
            except InvalidGeometry as exc:
                self.invalid_count += 1
                logger.warning("Skipping district feature #%s (%s): %s", position, properties, exc)
                continue

            minx, miny, maxx, maxy = geometry.bounds
            self._features.append(
                BoundaryFeature(
                    properties=properties,
                    geometry=geometry,
                    minx=minx,
                    miny=miny,
                    maxx=maxx,
                    maxy=maxy,
                    prepared_geometry=prep(geometry),
                )
            )

        logger.debug("Loaded %s boundary features (%s skipped)", len(self._features), self.invalid_count)

    def __len__(self) -> int:
        return len(self._features)

    def lookup(self, point: Point) -> Optional[Dict[str, Any]]:
        """Return properties of the first polygon containing the point."""
        for feature in self._features:
            if feature.contains(point):
                return feature.properties
        return None

    def largest_overlap(self, geometry: BaseGeometry) -> Optional[Dict[str, Any]]:
        """Return properties of the polygon sharing the largest area with `geometry`."""
        best_properties = None
        best_area = 0.0
        bounds = geometry.bounds
        for feature in self._features:
            if not feature.overlaps_bounds(bounds):
                continue
            area = feature.geometry.intersection(geometry).area
            if area > best_area:
                best_area = area
                best_properties = feature.properties
        return best_properties
