from django.core.management.base import BaseCommand, CommandError

from districts.management.utils import (
    add_snapshot_arguments,
    output_path,
    require_file,
    write_report,
)
from districts.services.crosswalk import read_pairs
from districts.services.prefix import PrefixTable
from districts.services.snapshots import PREFIX_TABLE, write_snapshot


class Command(BaseCommand):
    """Build a postal-code prefix → districts snapshot (Canadian FSA → riding)."""

    help = (
        "Read a CSV pairing postal codes or prefixes with districts, cut every code to its "
        "prefix, and write a prefix-table snapshot. Prefixes shared by several districts keep all of them."
    )

    def add_arguments(self, parser):
        parser.add_argument("--input", required=True, help="CSV pairing postal codes or prefixes with districts.")
        parser.add_argument("--country", default="CA")
        parser.add_argument("--code-column", default="fsa")
        parser.add_argument("--district-column", default="fed_code")
        parser.add_argument("--delimiter", default=",")
        parser.add_argument("--prefix-length", type=int, default=3)
        add_snapshot_arguments(parser)

    def handle(self, *args, **options):
        country = options["country"].upper()
        input_path = require_file(options["input"], "Prefix table")
        destination = output_path(options, country)

        try:
            table = PrefixTable.from_pairs(
                country,
                read_pairs(input_path, options["code_column"], options["district_column"], delimiter=options["delimiter"]),
                prefix_length=options["prefix_length"],
            )
        except (OSError, ValueError) as exc:
            raise CommandError(str(exc)) from exc

        if not len(table):
            raise CommandError(f"No usable rows in {input_path}. Snapshot not written.")

        data = table.to_snapshot_data()
        shared = sum(1 for ids in data["entries"].values() if len(ids) > 1)
        report = {
            "prefixes": len(table),
            "districts": len(table.district_ids()),
            "shared_prefixes": shared,
        }

        self.stdout.write(self.style.SUCCESS("\n=== Prefix table report ==="))
        self.stdout.write(f"Prefixes:                  {report['prefixes']}")
        self.stdout.write(f"Districts:                 {report['districts']}")
        self.stdout.write(f"Prefixes with >1 district: {report['shared_prefixes']}")

        report_path = write_report(options["report"], report)
        if report_path:
            self.stdout.write(f"Report written to {report_path}")

        write_snapshot(destination, PREFIX_TABLE, country, options["snapshot_version"], data)
        self.stdout.write(self.style.SUCCESS(f"Saved {len(table)} prefixes for {country} to {destination}"))
