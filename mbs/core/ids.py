"""
Sequential string identifiers.

Customers, orders and deliveries use readable ids (``C-00001``, ``O0000001``,
``D0000001``) and their lines use ``{parent_id}-{NN}``. Soft-deleted rows keep
their ids, so they take part in the sequence.
"""
import re


def format_sequential_id(prefix, number, width):
    return f'{prefix}{number:0{width}d}'


def next_sequential_id(queryset, prefix, width):
    """
    Next id after the highest ``prefix`` + digits id in ``queryset``.

    Ids with the prefix but a non-numeric suffix are ignored, so a table
    holding only such ids starts again at 1.
    """
    pattern = rf'^{re.escape(prefix)}[0-9]+$'
    last_number = 0
    for pk in queryset.filter(pk__regex=pattern).values_list('pk', flat=True):
        last_number = max(last_number, int(pk[len(prefix):]))
    return format_sequential_id(prefix, last_number + 1, width)


def next_detail_id(queryset, parent_id, width=2):
    """Next ``{parent_id}-{NN}`` id among the lines in ``queryset``"""
    prefix = f'{parent_id}-'
    last_number = 0
    for pk in queryset.filter(pk__startswith=prefix).values_list('pk', flat=True):
        suffix = pk[len(prefix):]
        if suffix.isdigit():
            last_number = max(last_number, int(suffix))
    return format_sequential_id(prefix, last_number + 1, width)
