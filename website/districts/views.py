# ABOUTME: JSON endpoint resolving a country and postal code to districts and representatives.
# ABOUTME: All resolution outcomes are HTTP 200; only an unsupported country is a client error.

import logging

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .services import ResolverRepository, UnsupportedCountryError

logger = logging.getLogger(__name__)


@require_http_methods(["GET"])
def resolve_postal_code(request):
    """
    Resolve ?country=..&postal_code=.. to a resolution result.

    Returns the result's dict form, e.g.
    {"status": "ambiguous", "district_ids": [...], "candidates": [...], ...}
    """
    country = request.GET.get('country', '').strip()
    postal_code = request.GET.get('postal_code', '').strip()

    if not country:
        return JsonResponse({'error': 'country is required'}, status=400)

    dispatch = ResolverRepository.get_dispatch()
    try:
        result = dispatch.resolve(country, postal_code)
    except UnsupportedCountryError as e:
        return JsonResponse(
            {'error': str(e), 'supported_countries': list(dispatch.supported_countries())},
            status=400,
        )

    logger.debug("Resolved %s %r: %s", country, postal_code, result.status)
    payload = result.to_dict()
    payload['country'] = dispatch.country(country).country_code
    return JsonResponse(payload, json_dumps_params={'ensure_ascii': False})
