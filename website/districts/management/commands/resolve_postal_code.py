# ABOUTME: Query management command to find districts and representatives by postal code.
# ABOUTME: Interactive tool for checking a country's resolution against its current snapshots.

import json

from django.core.management.base import BaseCommand, CommandError

from districts.services import ResolverRepository, UnsupportedCountryError
from districts.types import Ambiguous, Resolved


class Command(BaseCommand):
    help = 'Find the electoral district(s) for a postal code'

    def add_arguments(self, parser):
        parser.add_argument(
            'country',
            type=str,
            help='Country code (DE, FR, US, CA, GB)'
        )
        parser.add_argument(
            'postal_code',
            type=str,
            help='Postal code as a user would type it (e.g., "75006" or "SW1A 1AA")'
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Print the raw result as JSON'
        )

    def handle(self, *args, **options):
        dispatch = ResolverRepository.get_dispatch()
        try:
            result = dispatch.resolve(options['country'], options['postal_code'])
        except UnsupportedCountryError as e:
            raise CommandError(
                f"{e}. Supported: {', '.join(dispatch.supported_countries())}"
            ) from e

        if options['json']:
            self.stdout.write(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
            return

        if isinstance(result, Resolved):
            self.stdout.write(self.style.SUCCESS('\n=== Resolved ==='))
            for district in result.districts:
                self._write_district(district.id, district.name, district.parent_region)
            if not result.districts:
                self._write_district(result.district_ids[0], None, None)
            self._write_representatives(result.representatives)

        elif isinstance(result, Ambiguous):
            self.stdout.write(
                self.style.WARNING(f'\n=== Ambiguous: {len(result.candidates)} districts ===')
            )
            for candidate in result.candidates:
                district = candidate.district
                self._write_district(
                    candidate.district_id,
                    district.name if district else None,
                    district.parent_region if district else None,
                )
                self._write_representatives(candidate.representatives)

        else:
            self.stdout.write(self.style.ERROR(f'\nNo district found ({result.reason})'))

        if result.regional_representatives:
            self.stdout.write(self.style.SUCCESS('\n=== Regional representatives ==='))
            self._write_representatives(result.regional_representatives)

    def _write_district(self, district_id, name, region):
        self.stdout.write(f"\nDistrict: {district_id}")
        if name:
            self.stdout.write(f"  Name:   {name}")
        if region:
            self.stdout.write(f"  Region: {region}")

    def _write_representatives(self, representatives):
        if not representatives:
            self.stdout.write("  Reps:   (none in roster)")
            return
        for rep in representatives:
            party = f" ({rep.party})" if rep.party else ""
            self.stdout.write(f"  Rep:    {rep.name}{party}")
            if rep.email:
                self.stdout.write(f"          {rep.email}")
