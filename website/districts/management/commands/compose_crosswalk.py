from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from districts.management.utils import (
    add_snapshot_arguments,
    output_path,
    require_file,
    write_report,
)
from districts.services.crosswalk import CrosswalkComposer, load_overrides, read_pairs
from districts.services.snapshots import CROSSWALK_TABLE, write_snapshot

PACKAGED_OVERRIDES = {
    "FR": Path(__file__).resolve().parents[2] / "data" / "fr_overrides.json",
}


class Command(BaseCommand):
    """Compose postal code → district sets through an administrative-unit crosswalk."""

    help = (
        "Join a postal code → administrative unit table (e.g. La Poste code postal → commune INSEE) "
        "with an administrative unit → district table (e.g. bureaux de vote → circonscription), "
        "apply the manual overrides, and write a crosswalk-table snapshot."
    )

    def add_arguments(self, parser):
        parser.add_argument("--country", default="FR", help="Country code of the postal codes.")
        parser.add_argument(
            "--postal-units",
            required=True,
            help="CSV pairing postal codes with administrative units.",
        )
        parser.add_argument("--postal-code-column", default="code_postal")
        parser.add_argument("--postal-unit-column", default="code_commune_insee")
        parser.add_argument("--postal-units-delimiter", default=",")
        parser.add_argument(
            "--unit-districts",
            required=True,
            help="CSV pairing administrative units with districts.",
        )
        parser.add_argument("--unit-column", default="codeCommune")
        parser.add_argument("--district-column", default="codeCirconscription")
        parser.add_argument("--unit-districts-delimiter", default=",")
        parser.add_argument(
            "--overrides",
            default=None,
            help="JSON file of manual overrides. Defaults to the overrides shipped for the country, if any.",
        )
        parser.add_argument(
            "--no-overrides",
            action="store_true",
            help="Write the computed table without any override layer.",
        )
        parser.add_argument(
            "--max-unmatched-ratio",
            type=float,
            default=None,
            help="Fail without writing if a larger share of postal codes has no district.",
        )
        add_snapshot_arguments(parser)

    def handle(self, *args, **options):
        country = options["country"].upper()
        postal_units_path = require_file(options["postal_units"], "Postal code → unit table")
        unit_districts_path = require_file(options["unit_districts"], "Unit → district table")
        destination = output_path(options, country)

        try:
            composer = CrosswalkComposer(country)
            overrides = self._overrides(options, country)
            result = composer.compose(
                read_pairs(
                    postal_units_path,
                    options["postal_code_column"],
                    options["postal_unit_column"],
                    delimiter=options["postal_units_delimiter"],
                ),
                read_pairs(
                    unit_districts_path,
                    options["unit_column"],
                    options["district_column"],
                    delimiter=options["unit_districts_delimiter"],
                ),
                overrides=overrides,
            )
        except (OSError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        report = result.report
        print_crosswalk_report(self, report, len(overrides))
        report_path = write_report(options["report"], report.to_dict())
        if report_path:
            self.stdout.write(f"Report written to {report_path}")

        threshold = options["max_unmatched_ratio"]
        if threshold is not None and report.unmatched_ratio > threshold:
            raise CommandError(
                f"{len(report.unmatched)} of {report.postal_codes} postal codes have no district "
                f"({report.unmatched_ratio:.2%}), above the allowed {threshold:.2%}. Snapshot not written."
            )

        write_snapshot(destination, CROSSWALK_TABLE, country, options["snapshot_version"], result.to_snapshot_data())
        self.stdout.write(
            self.style.SUCCESS(f"Saved {len(result.effective())} postal codes for {country} to {destination}")
        )

    def _overrides(self, options, country):
        if options["no_overrides"]:
            return {}
        if options["overrides"]:
            return load_overrides(require_file(options["overrides"], "Overrides file"), country)
        packaged = PACKAGED_OVERRIDES.get(country)
        if packaged and packaged.exists():
            self.stdout.write(f"Using packaged overrides {packaged}")
            return load_overrides(packaged, country)
        return {}


def print_crosswalk_report(command, report, override_count):
    command.stdout.write(command.style.SUCCESS("\n=== Crosswalk report ==="))
    command.stdout.write(f"Postal codes:            {report.postal_codes}")
    command.stdout.write(f"Matched:                 {report.matched}")
    command.stdout.write(f"Unmatched:               {len(report.unmatched)} ({report.unmatched_ratio:.2%})")
    command.stdout.write(f"Malformed codes skipped: {report.malformed_codes}")
    command.stdout.write(f"Single district:         {report.single_district}")
    command.stdout.write(f"Multiple districts:      {report.multi_district}")
    for size, count in sorted(report.multi_district_sizes.items()):
        command.stdout.write(f"  {size} districts:          {count}")
    command.stdout.write(f"Units without districts: {report.units_without_districts}")
    command.stdout.write(
        f"Overrides:               {override_count} "
        f"({report.overrides_replaced} replaced, {report.overrides_added} added, "
        f"{report.overrides_unchanged} unchanged)"
    )
