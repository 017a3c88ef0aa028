import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)


def generate_unique_slug(instance, source_field="name", slug_field="slug"):
    """
    Generates a unique slug for a model instance.
    If a slug already exists, it appends a number.
    Assumes the model has a 'slug' field.
    """
    from django.utils.text import slugify

    if getattr(instance, slug_field):  # If slug is already set, assume it's intended
        return getattr(instance, slug_field)

    source_value = getattr(instance, source_field)
    base_slug = slugify(source_value) if source_value else ""
    if not base_slug:  # Empty source or slugify stripped everything
        base_slug = slugify(str(uuid.uuid4())[:8])

    ModelClass = instance.__class__
    slug = base_slug
    counter = 1
    while (
        ModelClass.objects.filter(**{slug_field: slug}).exclude(pk=instance.pk).exists()
    ):
        slug = f"{base_slug}-{counter}"
        counter += 1

    return slug


def round_half_up(value, places: int = 0) -> Decimal:
    """Rounds like a spreadsheet does (2.5 -> 3), unlike the built-in round()."""
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def id_key(value) -> str:
    """Normalises a UUID / model instance / string into the string key used in JSON maps."""
    if hasattr(value, "pk"):
        value = value.pk
    return str(value)
