from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from districts.geo import load_features
from districts.management.utils import (
    add_snapshot_arguments,
    output_path,
    require_file,
    write_report,
)
from districts.services.snapshots import SPATIAL_TABLE, write_snapshot
from districts.services.spatial import (
    CENTROID,
    DEFAULT_DISTRICT_ID_PROPERTIES,
    DEFAULT_DISTRICT_NAME_PROPERTIES,
    DEFAULT_POSTAL_CODE_PROPERTIES,
    DEFAULT_REGION_PROPERTIES,
    STRATEGIES,
    SpatialTableBuilder,
)


class Command(BaseCommand):
    """Build the postal code → district snapshot from two boundary datasets."""

    help = (
        "Assign every postal-code polygon to the district polygon containing its centroid "
        "(or sharing the largest area) and write the result as a spatial-table snapshot. "
        "Accepts GeoJSON files and Shapefiles (.shp or a .zip containing one)."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--postal-codes",
            required=True,
            help="Postal-code boundaries (GeoJSON, .shp or .zip), e.g. OSM PLZ polygons.",
        )
        parser.add_argument(
            "--districts",
            required=True,
            help="District boundaries (GeoJSON, .shp or .zip), e.g. the Bundeswahlleiterin Wahlkreise.",
        )
        parser.add_argument("--country", default="DE", help="Country code of both datasets.")
        parser.add_argument(
            "--strategy",
            choices=STRATEGIES,
            default=CENTROID,
            help="Matching algorithm: first district containing the centroid, or largest area overlap.",
        )
        parser.add_argument("--postal-crs", default=None, help="CRS of the postal-code dataset if not WGS84.")
        parser.add_argument("--district-crs", default=None, help="CRS of the district dataset if not WGS84.")
        parser.add_argument(
            "--postal-code-property",
            action="append",
            dest="postal_code_properties",
            help=f"Feature property holding the postal code (default: {', '.join(DEFAULT_POSTAL_CODE_PROPERTIES)}).",
        )
        parser.add_argument(
            "--district-id-property",
            action="append",
            dest="district_id_properties",
            help=f"Feature property holding the district id (default: {', '.join(DEFAULT_DISTRICT_ID_PROPERTIES)}).",
        )
        parser.add_argument(
            "--district-name-property",
            action="append",
            dest="district_name_properties",
            help="Feature property holding the district name.",
        )
        parser.add_argument(
            "--region-property",
            action="append",
            dest="region_properties",
            help="Feature property holding the district's region (e.g. the Bundesland).",
        )
        parser.add_argument(
            "--district-id-width",
            type=int,
            default=3,
            help="Zero-pad numeric district ids to this width (0 disables).",
        )
        parser.add_argument(
            "--max-unmatched-ratio",
            type=float,
            default=None,
            help="Fail without writing if a larger share of postal codes stays unmatched "
            "(default: SPATIAL_MAX_UNMATCHED_RATIO).",
        )
        parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
        add_snapshot_arguments(parser)

    def handle(self, *args, **options):
        country = options["country"].upper()
        postal_path = require_file(options["postal_codes"], "Postal-code boundaries")
        district_path = require_file(options["districts"], "District boundaries")
        destination = output_path(options, country)

        threshold = options["max_unmatched_ratio"]
        if threshold is None:
            threshold = getattr(settings, "SPATIAL_MAX_UNMATCHED_RATIO", 0.02)

        try:
            builder = SpatialTableBuilder(
                country_code=country,
                strategy=options["strategy"],
                postal_code_properties=options["postal_code_properties"] or DEFAULT_POSTAL_CODE_PROPERTIES,
                district_id_properties=options["district_id_properties"] or DEFAULT_DISTRICT_ID_PROPERTIES,
                district_name_properties=options["district_name_properties"] or DEFAULT_DISTRICT_NAME_PROPERTIES,
                region_properties=options["region_properties"] or DEFAULT_REGION_PROPERTIES,
                district_id_width=options["district_id_width"],
                progress=not options["no_progress"],
            )
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(f"Loading postal-code boundaries from {postal_path} ...")
        try:
            postal_features = load_features(postal_path)
            self.stdout.write(f"Loading district boundaries from {district_path} ...")
            district_features = load_features(district_path)
        except (OSError, ValueError) as exc:
            raise CommandError(f"Failed to load boundaries: {exc}") from exc

        result = builder.build(
            postal_features,
            district_features,
            postal_crs=options["postal_crs"],
            district_crs=options["district_crs"],
        )
        report = result.report

        self._print_report(report)
        report_path = write_report(options["report"], report.to_dict())
        if report_path:
            self.stdout.write(f"Report written to {report_path}")

        if report.exceeds(threshold):
            raise CommandError(
                f"{report.unresolved} of {report.postal_codes} postal codes unmatched "
                f"({report.unmatched_ratio:.2%}), above the allowed {threshold:.2%}. Snapshot not written."
            )

        write_snapshot(destination, SPATIAL_TABLE, country, options["snapshot_version"], result.to_snapshot_data())
        self.stdout.write(
            self.style.SUCCESS(f"Saved {report.matched} postal codes for {country} to {destination}")
        )

    def _print_report(self, report):
        self.stdout.write(self.style.SUCCESS("\n=== Spatial build report ==="))
        self.stdout.write(f"Strategy:                    {report.strategy}")
        self.stdout.write(f"Postal features:             {report.features}")
        self.stdout.write(f"Postal codes:                {report.postal_codes}")
        self.stdout.write(f"Matched:                     {report.matched}")
        self.stdout.write(f"Unmatched:                   {report.unresolved} ({report.unmatched_ratio:.2%})")
        self.stdout.write(f"Invalid postal geometries:   {report.invalid_postal_geometries}")
        self.stdout.write(f"Invalid district geometries: {report.invalid_district_geometries}")
        self.stdout.write(f"Features without code:       {report.missing_code}")
        self.stdout.write(f"Malformed codes:             {report.malformed_code}")
        self.stdout.write(f"Centroids outside polygon:   {report.centroid_outside}")
        self.stdout.write(f"Districts covered:           {report.districts_covered}/{report.districts_total}")

        if report.unmatched:
            preview = ", ".join(report.unmatched[:20])
            more = f" (+{len(report.unmatched) - 20} more)" if len(report.unmatched) > 20 else ""
            self.stdout.write(self.style.WARNING(f"Unmatched postal codes: {preview}{more}"))
