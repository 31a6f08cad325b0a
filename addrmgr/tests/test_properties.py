import pytest
from addrmgr.abstractapi import Entity
from addrmgr.exceptions import DecodeError
from addrmgr.properties import (
    AliasRecordProperties,
    HostRecordProperties,
    IP4AddressProperties,
    IP4BlockProperties,
    IP4NetworkProperties,
    decode,
    decode_entity,
    encode,
    encode_changes,
    merge_properties,
    split_properties,
)


@pytest.fixture
def network():
    """Fully populated network record."""
    return IP4NetworkProperties(
        name='servers',
        cidr='10.0.0.0/24',
        template=42,
        gateway='10.0.0.1',
        default_domains=[1, 2, 3],
        default_view=7,
        dns_restrictions=[9],
        allow_duplicate_host=True,
        ping_before_assign=False,
        inherit_allow_duplicate_host=False,
        inherit_ping_before_assign=False,
        inherit_dns_restrictions=True,
        inherit_default_domains=True,
        inherit_default_view=False,
        location_code='US NYC',
        location_inherited=True,
        shared_network='shared',
        dynamic_update=True,
        custom_fields={'owner': 'netops', 'ticket': 'NET-12'},
    )


def test_split_properties():
    assert split_properties('a=1|b=|c=x=y|') == [
        ('a', '1'), ('b', ''), ('c', 'x=y')]
    assert split_properties('') == []
    assert split_properties(None) == []
    assert split_properties('||a=1||') == [('a', '1')]

    with pytest.raises(DecodeError) as excinfo:
        split_properties('a=1|garbage|')
    assert 'garbage' in str(excinfo.value)

    errors = []
    assert split_properties('=1|a=2|', errors) == [('a', '2')]
    assert len(errors) == 1


def test_decode_unknown_keys():
    record = decode('foo=bar|CIDR=10.0.0.0/24|', IP4NetworkProperties)
    assert record.custom_fields == {'foo': 'bar'}
    assert record.cidr == '10.0.0.0/24'
    assert record.gateway is None


def test_decode_keys_are_case_sensitive():
    record = decode('cidr=10.0.0.0/24|', IP4NetworkProperties)
    assert record.cidr is None
    assert record.custom_fields == {'cidr': '10.0.0.0/24'}


def test_decode_empty_segments():
    expected = decode('CIDR=10.0.0.0/24|', IP4NetworkProperties)
    assert decode('CIDR=10.0.0.0/24||', IP4NetworkProperties) == expected
    assert decode('|CIDR=10.0.0.0/24', IP4NetworkProperties) == expected


def test_decode_empty():
    record = decode('', IP4NetworkProperties)
    assert record.custom_fields == {}
    assert record.cidr is None
    assert decode(None, IP4NetworkProperties) == record


def test_decode_values():
    record = decode('gateway=|foo=a=b|defaultDomains=4,5|'
                    'allowDuplicateHost=enable|pingBeforeAssign=other|'
                    'inheritDefaultView=True|locationInherited=0|',
                    IP4NetworkProperties)
    assert record.gateway == ''
    assert record.custom_fields == {'foo': 'a=b'}
    assert record.default_domains == [4, 5]
    assert record.allow_duplicate_host is True
    assert record.ping_before_assign is None
    assert record.inherit_default_view is True
    assert record.location_inherited is False


def test_decode_errors():
    raw = ('CIDR=10.0.0.0/24|template=abc|defaultView=12|'
           'dnsRestrictions=1,x|dynamicUpdate=yes|')
    with pytest.raises(DecodeError) as excinfo:
        decode(raw, IP4NetworkProperties)
    keys = [key for (key, value, reason) in excinfo.value.errors]
    assert keys == ['template', 'dnsRestrictions', 'dynamicUpdate']
    assert "template='abc'" in str(excinfo.value)

    with pytest.raises(DecodeError) as excinfo:
        decode('ttl=|', HostRecordProperties)
    assert excinfo.value.errors == [('ttl', '', 'not an integer')]

    with pytest.raises(DecodeError):
        decode('CIDR=10.0.0.0/24|nonsense|', IP4NetworkProperties)

    # DecodeError is also a ValueError
    with pytest.raises(ValueError):
        decode('ttl=1.5|', AliasRecordProperties)


def test_decode_block():
    record = decode('CIDR=10.0.0.0/8|start=10.0.0.0|end=10.255.255.255|'
                    'inheritDNSRestrictions=false|', IP4BlockProperties)
    assert record.cidr == '10.0.0.0/8'
    assert record.start == '10.0.0.0'
    assert record.end == '10.255.255.255'
    assert record.inherit_dns_restrictions is False


def test_decode_address():
    record = decode('address=10.0.0.5|state=STATIC|'
                    'macAddress=00-11-22-33-44-55|rack=12|',
                    IP4AddressProperties)
    assert record.address == '10.0.0.5'
    assert record.state == 'STATIC'
    assert record.mac_address == '00-11-22-33-44-55'
    assert record.custom_fields == {'rack': '12'}


def test_decode_host_record():
    record = decode('absoluteName=www.example.com|ttl=300|'
                    'addresses=10.0.0.2,10.0.0.3|addressIds=5,6|'
                    'reverseRecord=true|parentId=3|parentType=Zone|',
                    HostRecordProperties)
    assert record.absolute_name == 'www.example.com'
    assert record.ttl == 300
    assert record.addresses == ['10.0.0.2', '10.0.0.3']
    assert record.address_ids == [5, 6]
    assert record.reverse_record is True
    assert record.parent_id == 3
    assert record.parent_type == 'Zone'


def test_decode_alias_record():
    record = decode('absoluteName=web.example.com|'
                    'linkedRecordName=www.example.com|ttl=-1|',
                    AliasRecordProperties)
    assert record.linked_record_name == 'www.example.com'
    assert record.ttl == -1


def test_decode_entity():
    entity = Entity(10, 'net', 'IP4Network', 'CIDR=10.0.0.0/24|')
    assert decode_entity(entity).cidr == '10.0.0.0/24'
    assert decode_entity(entity, 'IP4Network').cidr == '10.0.0.0/24'

    with pytest.raises(DecodeError) as excinfo:
        decode_entity(entity, 'IP4Block')
    assert excinfo.value.entity_id == 10
    assert 'expected IP4Block' in str(excinfo.value)

    with pytest.raises(DecodeError) as excinfo:
        decode_entity(Entity(3, 'c', 'Configuration', ''))
    assert 'unsupported entity type' in str(excinfo.value)

    with pytest.raises(DecodeError) as excinfo:
        decode_entity(Entity(4, 'net', 'IP4Network', 'template=x|'))
    assert excinfo.value.entity_id == 4
    assert 'entity 4' in str(excinfo.value)


def test_record_rejects_unknown_fields():
    with pytest.raises(TypeError):
        IP4NetworkProperties(colour='blue')


def test_round_trip(network):
    raw = encode(network)
    assert decode(raw, IP4NetworkProperties) == network
    assert raw.endswith('|')

    pairs = set(split_properties(raw))
    assert ('CIDR', '10.0.0.0/24') in pairs
    assert ('defaultDomains', '1,2,3') in pairs
    assert ('allowDuplicateHost', 'enable') in pairs
    assert ('pingBeforeAssign', 'disable') in pairs
    assert ('inheritDefaultView', 'false') in pairs
    assert ('owner', 'netops') in pairs
    assert len(pairs) == 20


def test_round_trip_records():
    records = [
        IP4AddressProperties(address='10.0.0.9', state='STATIC',
                             location_inherited=False,
                             custom_fields={'rack': 'r1'}),
        HostRecordProperties(absolute_name='a.example.com', ttl=60,
                             addresses=['10.0.0.1'], address_ids=[1, 2],
                             reverse_record=False),
        AliasRecordProperties(absolute_name='b.example.com',
                              linked_record_name='a.example.com', ttl=0),
    ]
    for record in records:
        assert decode(encode(record), type(record)) == record


def test_encode_fields():
    record = IP4NetworkProperties(cidr='10.0.0.0/24', gateway='10.0.0.1',
                                  allow_duplicate_host=True,
                                  ping_before_assign=None,
                                  custom_fields={'owner': 'netops'})
    assert encode(record) == ('CIDR=10.0.0.0/24|gateway=10.0.0.1|'
                              'allowDuplicateHost=enable|owner=netops|')
    assert encode(record, fields={'gateway'}) == \
        'gateway=10.0.0.1|owner=netops|'
    assert encode(record, fields=set()) == 'owner=netops|'

    with pytest.raises(ValueError):
        encode(record, fields={'colour'})


def test_encode_lists_and_clear():
    record = IP4NetworkProperties(default_domains=[], dns_restrictions=[3, 4])
    assert encode(record) == 'dnsRestrictions=3,4|'
    assert encode(record, clear={'default_domains'}) == \
        'defaultDomains=|dnsRestrictions=3,4|'

    record = IP4NetworkProperties(custom_fields={'a': '1', 'b': '2'})
    assert encode(record, clear_custom={'b', 'gone'}) == 'a=1|b=|gone=|'

    with pytest.raises(ValueError):
        encode(record, clear={'gone'})


def test_encode_clear_custom_key_named_like_field():
    record = IP4NetworkProperties(cidr='10.0.0.0/24',
                                  custom_fields={'cidr': 'legacy'})
    assert encode(record, clear_custom={'cidr'}) == 'CIDR=10.0.0.0/24|cidr=|'
    assert encode(record, clear={'cidr'}) == 'CIDR=|cidr=legacy|'


def test_encode_rejects_separators():
    with pytest.raises(ValueError):
        encode(IP4NetworkProperties(gateway='10.0.0.1|x'))
    with pytest.raises(ValueError):
        encode(IP4NetworkProperties(custom_fields={'a=b': 'c'}))


def test_encode_changes(network):
    changed = IP4NetworkProperties(**network.as_dict())
    changed.gateway = '10.0.0.254'
    changed.allow_duplicate_host = None
    changed.dns_restrictions = []
    changed.custom_fields = {'owner': 'ops', 'site': 'par'}

    patch = encode_changes(network, changed)
    assert set(split_properties(patch)) == {
        ('gateway', '10.0.0.254'),
        ('allowDuplicateHost', ''),
        ('dnsRestrictions', ''),
        ('owner', 'ops'),
        ('site', 'par'),
        ('ticket', ''),
    }

    assert encode_changes(network, network) == ''
    assert encode_changes(None, network) == encode(network)

    with pytest.raises(TypeError):
        encode_changes(network, IP4BlockProperties())


def test_merge_properties():
    current = 'CIDR=10.0.0.0/24|gateway=10.0.0.1|owner=netops|'
    merged = merge_properties(current, 'gateway=10.0.0.254|owner=|site=par|')
    assert merged == 'CIDR=10.0.0.0/24|gateway=10.0.0.254|site=par|'
    assert merge_properties(None, 'a=1|') == 'a=1|'
    assert merge_properties(current, '') == current


def test_encode_changes_custom_key_named_like_field():
    stored = 'CIDR=10.0.0.0/24|cidr=legacy|defaultView=4|default_view=x|'
    old = decode(stored, IP4NetworkProperties)
    new = IP4NetworkProperties(**old.as_dict())
    new.custom_fields = {}

    patch = encode_changes(old, new)
    assert set(split_properties(patch)) == {('cidr', ''), ('default_view', '')}
    assert merge_properties(stored, patch) == 'CIDR=10.0.0.0/24|defaultView=4|'


def test_empty_list_is_not_round_tripped():
    # An explicit empty list is only written when cleared
    record = decode('CIDR=10.0.0.0/24|defaultDomains=|', IP4NetworkProperties)
    assert record.default_domains == []
    assert encode(record) == 'CIDR=10.0.0.0/24|'
    assert decode(encode(record), IP4NetworkProperties).default_domains is None
    assert encode(record, clear={'default_domains'}) == \
        'CIDR=10.0.0.0/24|defaultDomains=|'
