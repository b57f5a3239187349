"""
Django app configuration for django-nested-attributes.

On startup every model using ``NestedAttributesMixin`` has its nested
attribute declarations resolved, so a key pointing at a missing or
unsupported relation is reported at boot instead of on the first save.
"""

import logging

from django.apps import AppConfig as BaseAppConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseAppConfig):
    """Django app configuration for django-nested-attributes."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "nested_attributes"
    verbose_name = "Nested Attributes"
    label = "nested_attributes"

    def ready(self):
        """Validate nested attribute declarations once all models are loaded."""
        from .settings import NestedAttributesSettings

        settings = NestedAttributesSettings.from_django()
        if not settings.validate_on_startup:
            logger.debug("Nested attribute startup validation disabled")
            return
        self._validate_declarations()

    def _validate_declarations(self):
        from django.apps import apps

        from .exceptions import NestedConfigurationError
        from .mixins import NestedAttributesMixin

        validated = 0
        for model in apps.get_models():
            if not issubclass(model, NestedAttributesMixin) or not model.nested_attributes:
                continue
            try:
                model.get_nested_registry().resolve()
                validated += 1
            except NestedConfigurationError as e:
                logger.error(f"Invalid nested attributes on {model._meta.label}: {e}")
                if self._is_debug_mode():
                    raise
        logger.debug("Validated nested attributes of %s model(s)", validated)

    def _is_debug_mode(self):
        """Check if we're in debug mode."""
        from django.conf import settings as django_settings

        return getattr(django_settings, "DEBUG", False)
