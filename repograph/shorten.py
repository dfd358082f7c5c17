import logging
import os
import string
from typing import Iterable

from . import types
from .errors import ShorteningError

logger = logging.getLogger(__name__)

MIN_SHORTEN = 4
FULL_LENGTH = 40  # sha1 hex digits, used when there is nothing to measure


def shorten_length(oids: Iterable[types.OID], minimum=MIN_SHORTEN) -> int:
    """Smallest prefix length >= ``minimum`` that keeps every id distinct.

    Falls back to the full id length when no shorter prefix is unique.
    Raises ShorteningError for ids of mixed length or non-hex ids.
    """
    oids = sorted(set(oids))
    if not oids:
        return minimum

    full = len(oids[0])
    for oid in oids:
        if len(oid) != full:
            raise ShorteningError(f'mixed id lengths: {oids[0]} and {oid}')
        if not all(c in string.hexdigits for c in oid):
            raise ShorteningError(f'not a hex id: {oid!r}')

    # in sorted order the longest shared prefix is always between neighbours
    shared = max((len(os.path.commonprefix(pair)) for pair in zip(oids, oids[1:])), default=0)
    return min(max(shared + 1, minimum), full)


def resolve_length(oids: Iterable[types.OID]) -> int:
    oids = list(oids)
    try:
        return shorten_length(oids)
    except ShorteningError as e:
        full = max(map(len, oids), default=FULL_LENGTH)
        logger.warning('cannot shorten object ids (%s), using %d characters', e, full)
        return full
