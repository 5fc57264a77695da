import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class DistrictsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'districts'

    def ready(self):
        """Load the resolution snapshots on startup so the first request does not pay for it."""
        from .services import ResolverRepository, SnapshotError

        logger.info("Warming district resolution tables on startup...")
        try:
            dispatch = ResolverRepository.get_dispatch()
        except (SnapshotError, ValueError, OSError) as e:
            logger.warning(f"Failed to warm district resolution tables: {e}")
            return

        logger.info(
            "District resolution tables warmed for %s", ', '.join(dispatch.supported_countries())
        )
