from django.core.management.base import BaseCommand, CommandError

from districts.management.utils import write_report
from districts.services import ResolverRepository, UnsupportedCountryError


class Command(BaseCommand):
    """Cross-check resolution tables, district catalogs and representative rosters."""

    help = (
        "Report district ids that a resolution table can return but the catalog does not know, "
        "catalog districts without representatives, and roster entries for unknown districts."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "countries",
            nargs="*",
            help="Country codes to check (default: all configured countries).",
        )
        parser.add_argument("--report", default=None, help="Also write the findings as JSON to this path.")
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Exit with an error if any table id is missing from the catalog.",
        )

    def handle(self, *args, **options):
        dispatch = ResolverRepository.get_dispatch()
        countries = options["countries"] or list(dispatch.supported_countries())

        findings = {}
        for country in countries:
            try:
                resolver = dispatch.country(country)
            except UnsupportedCountryError as exc:
                raise CommandError(str(exc)) from exc
            findings[resolver.country_code] = self._check(resolver)

        problems = 0
        for country, result in findings.items():
            self.stdout.write(self.style.SUCCESS(f"\n=== {country} ({result['strategy']}) ==="))
            self.stdout.write(f"Districts in catalog:           {result['catalog_districts']}")
            self.stdout.write(f"Representatives:                {result['representatives']}")
            self._write_ids("Table ids missing from catalog", result["table_ids_missing_from_catalog"])
            self._write_ids("Districts without representatives", result["districts_without_representatives"])
            self._write_ids("Roster ids missing from catalog", result["roster_ids_missing_from_catalog"])
            problems += len(result["table_ids_missing_from_catalog"])

        report_path = write_report(options["report"], findings)
        if report_path:
            self.stdout.write(f"Report written to {report_path}")

        if options["strict"] and problems:
            raise CommandError(f"{problems} table district ids are missing from their catalogs")

    def _check(self, resolver):
        catalog_ids = {district.id for district in resolver.catalog}
        table_ids = set()
        if hasattr(resolver.strategy, "district_ids"):
            table_ids = set(resolver.strategy.district_ids())
        elif hasattr(resolver.strategy, "coverage"):
            table_ids = set(resolver.strategy.coverage())

        roster_ids = set(resolver.roster.district_ids())
        return {
            "strategy": resolver.strategy_name,
            "catalog_districts": len(catalog_ids),
            "representatives": len(resolver.roster),
            "table_ids_missing_from_catalog": sorted(table_ids - catalog_ids),
            "districts_without_representatives": sorted(catalog_ids - roster_ids),
            "roster_ids_missing_from_catalog": sorted(roster_ids - catalog_ids),
        }

    def _write_ids(self, label, ids):
        line = f"{label + ':':<32}{len(ids)}"
        if not ids:
            self.stdout.write(line)
            return
        preview = ", ".join(ids[:15])
        more = f" (+{len(ids) - 15} more)" if len(ids) > 15 else ""
        self.stdout.write(self.style.WARNING(f"{line}  {preview}{more}"))
