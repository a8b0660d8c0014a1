import datetime
import decimal
import uuid
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.utils import timezone

MONEY_QUANT = Decimal("0.01")
NUMBERING_ATTEMPTS = 5


def to_json_compatible(value):
    if isinstance(value, dict):
        return {key: to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_compatible(item) for item in value]
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime, datetime.time)):
        return value.isoformat()
    return value


def to_money(value):
    return Decimal(value or 0).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def daily_number(prefix, sequence, day=None):
    """Format ``PREFIX-YYYYMMDD-NNNN``; the sequence is 1-based."""
    day = day or timezone.localdate()
    return f"{prefix}-{day:%Y%m%d}-{sequence:04d}"


def next_daily_sequence(model, field, prefix, day=None):
    """Next 1-based sequence for ``day`` derived from rows already numbered that day.

    Uniqueness is enforced by the column; callers retry with a higher sequence on collision.
    """
    day = day or timezone.localdate()
    stem = f"{prefix}-{day:%Y%m%d}-"
    return model.objects.filter(**{f"{field}__startswith": stem}).count() + 1


def create_with_daily_number(model, field, prefix, **fields):
    """Create ``model`` with the next free daily number in ``field``.

    Each attempt runs in a savepoint so a collision with a concurrent writer
    does not poison the surrounding transaction.
    """
    day = timezone.localdate()
    sequence = next_daily_sequence(model, field, prefix, day)
    for _ in range(NUMBERING_ATTEMPTS):
        number = daily_number(prefix, sequence, day)
        try:
            with transaction.atomic():
                return model.objects.create(**{field: number}, **fields)
        except IntegrityError:
            if not model.objects.filter(**{field: number}).exists():
                raise
            sequence += 1
    raise IntegrityError(f"Could not allocate a unique {field} for {prefix} after {NUMBERING_ATTEMPTS} attempts.")


def validated_filters(serializer_class, query_params):
    """Validate list filters from the query string; blank values count as absent."""
    serializer = serializer_class(data={key: value for key, value in query_params.items() if value != ""})
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data
