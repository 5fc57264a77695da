import logging

from django.core.management.base import BaseCommand, CommandError

from districts.constants import normalize_us_state
from districts.management.commands.compose_crosswalk import print_crosswalk_report
from districts.management.utils import (
    add_snapshot_arguments,
    output_path,
    require_file,
    write_report,
)
from districts.services.crosswalk import CrosswalkComposer, load_overrides, read_columns
from districts.services.snapshots import CROSSWALK_TABLE, write_snapshot

logger = logging.getLogger(__name__)


def congressional_district_id(state, number):
    """Format a congressional district as 'ST-NN' (e.g. 'CA-12'); at-large seats are 'ST-00'."""
    state_code = normalize_us_state(state)
    if not state_code:
        return None
    try:
        return f"{state_code}-{int(number):02d}"
    except (TypeError, ValueError):
        return None


class Command(BaseCommand):
    """Build the US ZIP → congressional district snapshot from the Census relationship file."""

    help = (
        "Read a ZCTA → congressional district CSV (columns state_abbr, zcta, cd by default) "
        "and write a crosswalk-table snapshot keyed by ZIP code. ZIPs spanning several "
        "districts keep all of them."
    )

    def add_arguments(self, parser):
        parser.add_argument("--input", required=True, help="ZCTA → district CSV file.")
        parser.add_argument("--state-column", default="state_abbr")
        parser.add_argument("--zip-column", default="zcta")
        parser.add_argument("--district-column", default="cd")
        parser.add_argument("--delimiter", default=",")
        parser.add_argument("--overrides", default=None, help="Optional JSON file of manual overrides.")
        add_snapshot_arguments(parser)

    def handle(self, *args, **options):
        input_path = require_file(options["input"], "ZCTA → district file")
        destination = output_path(options, "US")

        pairs = []
        skipped = 0
        try:
            overrides = {}
            if options["overrides"]:
                overrides = load_overrides(require_file(options["overrides"], "Overrides file"), "US")

            columns = (options["zip_column"], options["state_column"], options["district_column"])
            for zip_code, state, number in read_columns(input_path, columns, delimiter=options["delimiter"]):
                district_id = congressional_district_id(state, number)
                if district_id is None:
                    skipped += 1
                    logger.debug("Skipping ZCTA %s with state %r and district %r", zip_code, state, number)
                    continue
                pairs.append((zip_code, district_id))
        except (OSError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        result = CrosswalkComposer("US").compose_direct(pairs, overrides=overrides)

        print_crosswalk_report(self, result.report, len(overrides))
        if skipped:
            self.stdout.write(self.style.WARNING(f"Rows without a usable state or district: {skipped}"))

        report = result.report.to_dict()
        report["rows_without_district"] = skipped
        report_path = write_report(options["report"], report)
        if report_path:
            self.stdout.write(f"Report written to {report_path}")

        write_snapshot(destination, CROSSWALK_TABLE, "US", options["snapshot_version"], result.to_snapshot_data())
        self.stdout.write(
            self.style.SUCCESS(f"Saved {len(result.effective())} ZIP codes to {destination}")
        )
