import logging

from netaddr import AddrFormatError, IPNetwork

from addrmgr.abstractapi import IP4_ADDRESS
from addrmgr.exceptions import CapacityError

logger = logging.getLogger(__name__)

IPV4_BITS = 32


class CapacityReport:
    def __init__(self, total_addresses, in_use):
        if in_use < 0:
            raise ValueError('in_use must not be negative')
        self.total_addresses = total_addresses
        self.in_use = in_use

    @property
    def free(self):
        return self.total_addresses - self.in_use

    def __eq__(self, other):
        if not isinstance(other, CapacityReport):
            return NotImplemented
        return (self.total_addresses, self.in_use) == \
            (other.total_addresses, other.in_use)

    def __repr__(self):
        return 'CapacityReport(total={}, in_use={}, free={})'.format(
            self.total_addresses, self.in_use, self.free)


def address_count(cidr, container_id=None):
    """
    Return the number of addresses held by an IPv4 CIDR string such as
    10.0.0.0/24.
    """
    if not cidr or '/' not in cidr:
        raise CapacityError(
            'Missing prefix length in {!r}'.format(cidr), container_id)

    prefix = cidr.split('/', 1)[1]
    try:
        prefixlen = int(prefix)
    except ValueError:
        raise CapacityError(
            'Invalid prefix length in {!r}'.format(cidr), container_id)
    if prefixlen < 0 or prefixlen > IPV4_BITS:
        raise CapacityError(
            'Prefix length {} out of range in {!r}'.format(prefixlen, cidr),
            container_id)

    try:
        network = IPNetwork(cidr)
    except (AddrFormatError, ValueError, TypeError):
        raise CapacityError(
            'Invalid network {!r}'.format(cidr), container_id)
    if network.version != 4:
        raise CapacityError(
            'Network {!r} is not IPv4'.format(cidr), container_id)

    return 2 ** (IPV4_BITS - prefixlen)


def compute_capacity(cidr, container_id, api):
    """
    Compute how many addresses container_id can hold and how many of
    them are taken.

    The API has no count operation, so every IP4Address child is listed
    in a single page as large as the network itself.
    """
    total = address_count(cidr, container_id)
    try:
        children = api.get_entities(container_id, IP4_ADDRESS, 0, total)
    except Exception as e:
        raise CapacityError(
            'Unable to list addresses: {}'.format(e), container_id) from e

    report = CapacityReport(total, len(children))
    logger.debug('Network %s (%s): %d addresses, %d in use, %d free',
                 container_id, cidr, report.total_addresses, report.in_use,
                 report.free)
    return report
