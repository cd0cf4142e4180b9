import re

from django.db.models import IntegerField, Max
from django.db.models.functions import Cast, Substr
from django.utils import timezone


def next_daily_number(model, field, prefix, sep='/', width=3):
    """
    Next human-readable number for today, e.g. IPD/20250114/007.

    Follows the highest issued sequence with the same date prefix, compared
    numerically so that 1000 follows 999. A concurrent duplicate is caught
    by the unique constraint on `field`.
    """
    date_str = timezone.localdate().strftime('%Y%m%d')
    stem = f"{prefix}{sep}{date_str}{sep}"
    last = (
        model.objects.filter(**{
            f'{field}__startswith': stem,
            f'{field}__regex': f'^{re.escape(stem)}[0-9]+$',
        })
        .annotate(seq=Cast(Substr(field, len(stem) + 1), IntegerField()))
        .aggregate(last=Max('seq'))['last']
    )
    return f"{stem}{(last or 0) + 1:0{width}d}"
