"""
Codec for entity properties strings.

Every entity carries its settings in a single string of pipe separated
``key=value`` pairs, e.g. ``CIDR=10.0.0.0/24|gateway=10.0.0.1|``. Each
entity type has a fixed table of known keys; anything else is a user
defined (custom) field and is kept verbatim.
"""
import re

from addrmgr.exceptions import DecodeError
from addrmgr.tristate import from_tristate, to_tristate

PAIR_SEPARATOR = '|'
VALUE_SEPARATOR = '='
LIST_SEPARATOR = ','

STRING = 'string'
INT = 'int'
BOOL = 'bool'
TRISTATE = 'tristate'
INT_LIST = 'int list'
STRING_LIST = 'string list'

LIST_KINDS = (INT_LIST, STRING_LIST)

# Spellings accepted for booleans by the remote API
TRUE_VALUES = ('1', 't', 'T', 'TRUE', 'true', 'True')
FALSE_VALUES = ('0', 'f', 'F', 'FALSE', 'false', 'False')

_INT_RE = re.compile(r'^[+-]?[0-9]+$')


def _parse_int(value):
    if not _INT_RE.match(value):
        raise ValueError('not an integer')
    return int(value)


class Field:
    def __init__(self, name, key, kind=STRING):
        self.name = name
        self.key = key
        self.kind = kind

    def parse(self, value):
        """Convert a raw value. Raises ValueError with the reason."""
        if self.kind == STRING:
            return value
        if self.kind == INT:
            return _parse_int(value)
        if self.kind == BOOL:
            if value in TRUE_VALUES:
                return True
            if value in FALSE_VALUES:
                return False
            raise ValueError('not a boolean')
        if self.kind == TRISTATE:
            return to_tristate(value)
        if self.kind == INT_LIST:
            if value == '':
                return []
            return [_parse_int(item) for item in value.split(LIST_SEPARATOR)]
        if self.kind == STRING_LIST:
            if value == '':
                return []
            return value.split(LIST_SEPARATOR)
        raise ValueError('unknown field kind {}'.format(self.kind))

    def format(self, value):
        """Convert a value to its raw form, None if it must be omitted."""
        if value is None:
            return None
        if self.kind == BOOL:
            return 'true' if value else 'false'
        if self.kind == TRISTATE:
            return from_tristate(value)
        if self.kind in LIST_KINDS:
            if not value:
                return None
            return LIST_SEPARATOR.join(str(item) for item in value)
        return str(value)

    def __repr__(self):
        return 'Field({!r}, {!r}, {!r})'.format(self.name, self.key,
                                                self.kind)


class PropertyRecord:
    """
    Decoded properties of one entity.

    Known fields are plain attributes (None when unset), every other key
    lives in custom_fields.
    """
    entity_type = None
    FIELDS = ()

    def __init__(self, custom_fields=None, **values):
        for field in self.FIELDS:
            setattr(self, field.name, values.pop(field.name, None))
        if values:
            raise TypeError('Unknown field(s) for {}: {}'.format(
                self.entity_type, ', '.join(sorted(values))))
        self.custom_fields = dict(custom_fields or {})

    @classmethod
    def field_names(cls):
        return [field.name for field in cls.FIELDS]

    @classmethod
    def field_by_name(cls, name):
        for field in cls.FIELDS:
            if field.name == name:
                return field
        return None

    @classmethod
    def field_by_key(cls, key):
        for field in cls.FIELDS:
            if field.key == key:
                return field
        return None

    def as_dict(self):
        values = {field.name: getattr(self, field.name)
                  for field in self.FIELDS}
        values['custom_fields'] = dict(self.custom_fields)
        return values

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self):
        values = ', '.join('{}={!r}'.format(name, value)
                           for (name, value) in self.as_dict().items()
                           if value is not None)
        return '{}({})'.format(type(self).__name__, values)


_CONTAINER_FIELDS = (
    Field('default_domains', 'defaultDomains', INT_LIST),
    Field('default_view', 'defaultView', INT),
    Field('dns_restrictions', 'dnsRestrictions', INT_LIST),
    Field('allow_duplicate_host', 'allowDuplicateHost', TRISTATE),
    Field('ping_before_assign', 'pingBeforeAssign', TRISTATE),
    Field('inherit_allow_duplicate_host', 'inheritAllowDuplicateHost', BOOL),
    Field('inherit_ping_before_assign', 'inheritPingBeforeAssign', BOOL),
    Field('inherit_dns_restrictions', 'inheritDNSRestrictions', BOOL),
    Field('inherit_default_domains', 'inheritDefaultDomains', BOOL),
    Field('inherit_default_view', 'inheritDefaultView', BOOL),
    Field('location_code', 'locationCode'),
    Field('location_inherited', 'locationInherited', BOOL),
)


class IP4NetworkProperties(PropertyRecord):
    entity_type = 'IP4Network'
    FIELDS = (
        Field('name', 'name'),
        Field('cidr', 'CIDR'),
        Field('template', 'template', INT),
        Field('gateway', 'gateway'),
    ) + _CONTAINER_FIELDS + (
        Field('shared_network', 'sharedNetwork'),
        Field('dynamic_update', 'dynamicUpdate', BOOL),
    )


class IP4BlockProperties(PropertyRecord):
    entity_type = 'IP4Block'
    FIELDS = (
        Field('name', 'name'),
        Field('cidr', 'CIDR'),
        Field('start', 'start'),
        Field('end', 'end'),
    ) + _CONTAINER_FIELDS


class IP4AddressProperties(PropertyRecord):
    entity_type = 'IP4Address'
    FIELDS = (
        Field('address', 'address'),
        Field('state', 'state'),
        Field('mac_address', 'macAddress'),
        Field('router_port_info', 'routerPortInfo'),
        Field('switch_port_info', 'switchPortInfo'),
        Field('vlan_info', 'vlanInfo'),
        Field('lease_time', 'leaseTime'),
        Field('expiry_time', 'expiryTime'),
        Field('parameter_request_list', 'parameterRequestList'),
        Field('vendor_class_identifier', 'vendorClassIdentifier'),
        Field('location_code', 'locationCode'),
        Field('location_inherited', 'locationInherited', BOOL),
    )


class HostRecordProperties(PropertyRecord):
    entity_type = 'HostRecord'
    FIELDS = (
        Field('absolute_name', 'absoluteName'),
        Field('ttl', 'ttl', INT),
        Field('addresses', 'addresses', STRING_LIST),
        Field('address_ids', 'addressIds', INT_LIST),
        Field('reverse_record', 'reverseRecord', BOOL),
        Field('parent_id', 'parentId', INT),
        Field('parent_type', 'parentType'),
    )


class AliasRecordProperties(PropertyRecord):
    entity_type = 'AliasRecord'
    FIELDS = (
        Field('absolute_name', 'absoluteName'),
        Field('linked_record_name', 'linkedRecordName'),
        Field('ttl', 'ttl', INT),
        Field('parent_id', 'parentId', INT),
        Field('parent_type', 'parentType'),
    )


RECORD_TYPES = {
    cls.entity_type: cls for cls in (
        IP4NetworkProperties,
        IP4BlockProperties,
        IP4AddressProperties,
        HostRecordProperties,
        AliasRecordProperties,
    )
}


def split_properties(raw, errors=None):
    """
    Split a raw properties string into a list of (key, value) pairs.

    Empty segments (including the trailing one) are skipped. Segments
    are split on the first '=' only, so values may contain '=' or be
    empty. Malformed segments are appended to errors when a list is
    given, otherwise a DecodeError is raised.
    """
    pairs = []
    malformed = []
    for segment in (raw or '').split(PAIR_SEPARATOR):
        if not segment:
            continue
        key, separator, value = segment.partition(VALUE_SEPARATOR)
        if not separator or not key:
            malformed.append((segment, '', 'malformed key=value pair'))
            continue
        pairs.append((key, value))

    if malformed:
        if errors is None:
            raise DecodeError(malformed)
        errors.extend(malformed)
    return pairs


def decode(raw, record_class, entity_id=None):
    """
    Decode a raw properties string into a record_class instance.

    Every malformed value is collected and reported together in one
    DecodeError; decoding does not stop at the first bad field.
    """
    errors = []
    values = {}
    custom_fields = {}

    for (key, value) in split_properties(raw, errors):
        field = record_class.field_by_key(key)
        if field is None:
            custom_fields[key] = value
            continue
        try:
            values[field.name] = field.parse(value)
        except ValueError as e:
            errors.append((key, value, str(e)))

    if errors:
        raise DecodeError(errors, entity_id)
    return record_class(custom_fields=custom_fields, **values)


def decode_entity(entity, expected_type=None):
    """Decode the properties of an Entity using its type tag."""
    if expected_type is not None and entity.type != expected_type:
        raise DecodeError(
            [('type', entity.type, 'expected {}'.format(expected_type))],
            entity.id)
    record_class = RECORD_TYPES.get(entity.type)
    if record_class is None:
        raise DecodeError([('type', entity.type, 'unsupported entity type')],
                          entity.id)
    return decode(entity.properties, record_class, entity.id)


def _format_pair(key, value):
    if PAIR_SEPARATOR in key or VALUE_SEPARATOR in key:
        raise ValueError('Invalid property key {!r}'.format(key))
    if PAIR_SEPARATOR in value:
        raise ValueError('Invalid value {!r} for property {}'.format(
            value, key))
    return '{}={}{}'.format(key, value, PAIR_SEPARATOR)


def encode(record, fields=None, clear=None, clear_custom=None):
    """
    Encode record into a properties string.

    Only the known fields named in fields are written (all of them when
    fields is None), followed by every custom field. Unset values and
    empty lists are left out. Known field names in clear and custom keys
    in clear_custom are written as explicit empty values ("key=|") so
    the remote side drops them. A custom key never clears a known field,
    even when spelled like its attribute name.
    """
    clear = set(clear or ())
    clear_custom = set(clear_custom or ())
    names = set(record.field_names())
    if fields is not None:
        fields = set(fields)
        unknown = fields - names
        if unknown:
            raise ValueError('Unknown field(s) for {}: {}'.format(
                record.entity_type, ', '.join(sorted(unknown))))
    unknown = clear - names
    if unknown:
        raise ValueError('Unknown field(s) for {}: {}'.format(
            record.entity_type, ', '.join(sorted(unknown))))

    parts = []
    for field in record.FIELDS:
        if field.name in clear:
            parts.append(_format_pair(field.key, ''))
            continue
        if fields is not None and field.name not in fields:
            continue
        value = field.format(getattr(record, field.name))
        if value is None:
            continue
        parts.append(_format_pair(field.key, value))

    for (key, value) in sorted(record.custom_fields.items()):
        if key in clear_custom:
            continue
        parts.append(_format_pair(key, value))

    for key in sorted(clear_custom):
        parts.append(_format_pair(key, ''))

    return ''.join(parts)


def encode_changes(old, new):
    """
    Return the partial update turning old into new.

    Fields which changed are written with their new value, fields which
    became unset and custom fields which disappeared are cleared. A full
    record must never be sent as an update: it would pin inherited
    settings to explicit values.
    """
    if old is None:
        return encode(new)
    if type(old) is not type(new):
        raise TypeError('Cannot compare {} with {}'.format(
            type(old).__name__, type(new).__name__))

    changed = {}
    clear = set()
    for field in new.FIELDS:
        before = getattr(old, field.name)
        after = getattr(new, field.name)
        if after == before:
            continue
        if after is None or (field.kind in LIST_KINDS and not after):
            if before is not None:
                clear.add(field.name)
        else:
            changed[field.name] = after

    custom_fields = {key: value for (key, value) in new.custom_fields.items()
                     if old.custom_fields.get(key) != value}
    clear_custom = set(key for key in old.custom_fields
                       if key not in new.custom_fields)

    patch = type(new)(custom_fields=custom_fields, **changed)
    return encode(patch, clear=clear, clear_custom=clear_custom)


def merge_properties(current, patch):
    """
    Apply a partial update to a stored properties string.

    Pairs of patch replace those of current, a pair with an empty value
    removes the key.
    """
    pairs = dict(split_properties(current))
    for (key, value) in split_properties(patch):
        if value == '':
            pairs.pop(key, None)
        else:
            pairs[key] = value
    return ''.join(_format_pair(key, value) for (key, value) in pairs.items())
