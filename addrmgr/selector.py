"""
Selection of a network with at least one free address out of a list of
candidate network ids.

Two policies are available: the network with the most free addresses,
or a (optionally seeded) random pick. Every candidate is inspected with
one entity lookup and one child listing, strictly in sequence.
"""
import logging
import random
import time

from addrmgr.abstractapi import IP4_NETWORK
from addrmgr.capacity import compute_capacity
from addrmgr.exceptions import (
    CapacityError,
    CollaboratorError,
    IPAMError,
    NoCapacityError,
    NotFoundError,
)
from addrmgr.properties import decode_entity

logger = logging.getLogger(__name__)

ON_ERROR_ABORT = 'abort'
ON_ERROR_SKIP = 'skip'

DEFAULT_SELECTOR_OPTIONS = {
    # Number of full permutations walked by the random policy before
    # giving up
    'max_permutations': 5,
    'on_error': ON_ERROR_ABORT,
}

CRC64_ISO_POLY = 0xD800000000000000
CRC64_MASK = 0xFFFFFFFFFFFFFFFF


def _make_crc64_table(poly):
    table = []
    for i in range(256):
        crc = i
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ poly
            else:
                crc >>= 1
        table.append(crc)
    return table


_CRC64_ISO_TABLE = _make_crc64_table(CRC64_ISO_POLY)


def crc64_iso(data):
    """CRC-64 checksum of data using the ISO 3309 polynomial."""
    crc = CRC64_MASK
    for byte in data:
        crc = _CRC64_ISO_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ CRC64_MASK


def new_rand(seed=None):
    """
    Return a random generator seeded from the checksum of seed, or from
    the current time when seed is empty.
    """
    if seed:
        seed_value = crc64_iso(seed.encode('utf-8'))
    else:
        seed_value = time.time_ns()
    return random.Random(seed_value)


def permutation(rand, count):
    order = list(range(count))
    rand.shuffle(order)
    return order


class CandidateNetwork:
    def __init__(self, id, properties, capacity):
        self.id = id
        self.properties = properties
        self.capacity = capacity

    @property
    def free(self):
        return self.capacity.free

    def __repr__(self):
        return 'CandidateNetwork({!r}, {!r})'.format(self.id, self.capacity)


class NetworkSelector:

    def __init__(self, api, params=None):
        params = params or {}
        options = DEFAULT_SELECTOR_OPTIONS.copy()
        for (option, value) in DEFAULT_SELECTOR_OPTIONS.items():
            if params.get(option) is not None:
                value = params[option]
            options[option] = value

        max_permutations = options['max_permutations']
        if not isinstance(max_permutations, int) or max_permutations < 1:
            raise ValueError('max_permutations must be a positive integer, '
                             'got {!r}'.format(max_permutations))
        if options['on_error'] not in (ON_ERROR_ABORT, ON_ERROR_SKIP):
            raise ValueError('Unsupported on_error policy {!r}'.format(
                options['on_error']))

        self.api = api
        self.options = options

    @property
    def max_permutations(self):
        return self.options['max_permutations']

    @property
    def on_error(self):
        return self.options['on_error']

    def get_entity(self, entity_id):
        """
        Fetch an entity, raising NotFoundError for the empty entity the
        API returns for unknown ids.
        """
        try:
            entity = self.api.get_entity(entity_id)
        except IPAMError:
            raise
        except Exception as e:
            raise CollaboratorError(
                'Failed to get entity {}: {}'.format(entity_id, e)) from e
        if entity is None or not entity.id:
            raise NotFoundError(entity_id)
        return entity

    def inspect(self, candidate_id):
        """Resolve properties and capacity of one candidate network."""
        entity = self.get_entity(candidate_id)
        properties = decode_entity(entity, IP4_NETWORK)
        if not properties.cidr:
            raise CapacityError('Network has no CIDR', entity.id)
        capacity = compute_capacity(properties.cidr, entity.id, self.api)
        logger.debug('Inspected network %s: %d free', candidate_id,
                     capacity.free)
        return CandidateNetwork(candidate_id, properties, capacity)

    def _inspect(self, candidate_id, errors):
        """
        Inspect a candidate under the configured error policy. Returns
        None for a skipped candidate.
        """
        try:
            return self.inspect(candidate_id)
        except IPAMError as e:
            if self.on_error != ON_ERROR_SKIP:
                raise
            logger.warning('Skipping network %s: %s', candidate_id, e)
            errors.append(e)
            return None

    @staticmethod
    def _check_candidates(candidates):
        candidates = list(candidates)
        if not candidates:
            raise ValueError('Candidate network list cannot be empty')
        return candidates

    def select_most_free(self, candidates):
        """
        Return the id of the candidate with the most free addresses.
        Ties are won by the candidate listed first.
        """
        candidates = self._check_candidates(candidates)
        errors = []
        best = None
        for candidate_id in candidates:
            candidate = self._inspect(candidate_id, errors)
            if candidate is None or candidate.free <= 0:
                continue
            if best is None or candidate.free > best.free:
                best = candidate

        if best is None:
            raise NoCapacityError(candidates, errors)
        logger.info('Selected network %s with %d free addresses',
                    best.id, best.free)
        return best.id

    def select_random(self, candidates, seed=None):
        """
        Return the id of a random candidate having at least one free
        address.

        Candidates are walked in random order; when a whole permutation
        holds no free address a new one is drawn, at most
        max_permutations times.
        """
        candidates = self._check_candidates(candidates)
        rand = new_rand(seed)
        errors = []

        for attempt in range(1, self.max_permutations + 1):
            # Only failures of the last walk are reported
            errors = []
            order = permutation(rand, len(candidates))
            logger.debug('Permutation %d/%d: %s', attempt,
                         self.max_permutations, order)
            for index in order:
                candidate = self._inspect(candidates[index], errors)
                if candidate is not None and candidate.free > 0:
                    logger.info('Selected network %s with %d free addresses',
                                candidate.id, candidate.free)
                    return candidate.id

        raise NoCapacityError(candidates, errors)

    def select(self, candidates, random=False, seed=None):
        if random:
            return self.select_random(candidates, seed)
        return self.select_most_free(candidates)
