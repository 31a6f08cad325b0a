import logging
import sqlite3

import mysql.connector
from netaddr import IPAddress, IPNetwork

from addrmgr.abstractapi import (
    IP4_ADDRESS,
    IP4_NETWORK,
    AbstractEntityAPI,
    Entity,
)
from addrmgr.capacity import address_count
from addrmgr.exceptions import NoCapacityError, NotFoundError
from addrmgr.properties import (
    IP4AddressProperties,
    decode_entity,
    encode,
    merge_properties,
)

logger = logging.getLogger(__name__)

DEFAULT_DB_TYPE = 'mysql'

LOCK_NAME = 'addrmgr_entity_lock'
LOCK_TIMEOUT = 5

# Address assignment actions and the state they leave the address in
IP_ASSIGNMENT_ACTIONS = {
    'MAKE_STATIC': 'STATIC',
    'MAKE_RESERVED': 'RESERVED',
    'MAKE_DHCP_RESERVED': 'DHCP_RESERVED',
}

ENTITY_COLUMNS = 'id, name, type, properties'


class MySQLLock:
    def __init__(self, store):
        self.store = store

    def __enter__(self):
        if self.store.dbtype == 'mysql':
            # Disable autocommit during writes for transactional behavior
            self.store.db.autocommit = False
            self.store.db.start_transaction(isolation_level='SERIALIZABLE')
            self.store.cur.execute('SELECT GET_LOCK(%s, %s)',
                                   (LOCK_NAME, LOCK_TIMEOUT))
            row = self.store.cur.fetchone()

            if not row[0]:
                e = 'Could not obtain lock within {} seconds.'.format(
                    LOCK_TIMEOUT)
                raise RuntimeError(e)

    def __exit__(self, exception_type, exception_value, exception_traceback):
        if self.store.dbtype == 'mysql':
            if exception_type:
                self.store.db.rollback()
            else:
                self.store.db.commit()
            self.store.cur.execute('SELECT RELEASE_LOCK(%s)', (LOCK_NAME,))
            self.store.db.autocommit = True
        else:
            if exception_type:
                self.store.db.rollback()
            else:
                self.store.db.commit()


class SQLEntityStore(AbstractEntityAPI):
    """
    Entity API served from an ``entities`` table:

        id, parent_id, name, type, properties
    """

    def __init__(self, params):
        dbtype = DEFAULT_DB_TYPE
        if 'dbtype' in params:
            dbtype = params['dbtype']
        self.dbtype = dbtype
        if dbtype == 'sqlite':
            self.db = sqlite3.connect(params['database_uri'])
            self.placeholder = '?'
        elif dbtype == 'mysql':
            self.db = mysql.connector.connect(
                host=params['database_host'],
                user=params['username'],
                password=params['password'],
                database=params['database_name']
            )
            # Enable autocommit for reads to prevent entering transaction
            self.db.autocommit = True
            self.placeholder = '%s'
        else:
            raise ValueError('Unsupported database driver')
        self.cur = self.db.cursor()

    def _query(self, query, args=()):
        self.cur.execute(query.replace('?', self.placeholder), args)

    @staticmethod
    def _entity(row):
        if row is None:
            return Entity.empty()
        return Entity(int(row[0]), row[1], row[2], row[3])

    def login(self):
        """The database has no remote session, nothing to open."""
        logger.debug('Session opened on %s store', self.dbtype)

    def logout(self):
        logger.debug('Session closed on %s store', self.dbtype)

    def get_entity(self, entity_id):
        """
        Return the entity with id entity_id, or the empty entity (id 0)
        when it does not exist.
        """
        self._query('SELECT ' + ENTITY_COLUMNS + ' FROM entities '
                    'WHERE id = ?', (entity_id,))
        return self._entity(self.cur.fetchone())

    def get_entities(self, parent_id, entity_type, start, count):
        self._query('SELECT ' + ENTITY_COLUMNS + ' FROM entities '
                    'WHERE parent_id = ? AND type = ? '
                    'ORDER BY id ASC LIMIT ? OFFSET ?',
                    (parent_id, entity_type, count, start))
        return [self._entity(row) for row in self.cur.fetchall()]

    def get_entity_by_name(self, parent_id, name, entity_type):
        self._query('SELECT ' + ENTITY_COLUMNS + ' FROM entities '
                    'WHERE parent_id = ? AND name = ? AND type = ?',
                    (parent_id, name, entity_type))
        return self._entity(self.cur.fetchone())

    def _require_entity(self, entity_id):
        entity = self.get_entity(entity_id)
        if not entity.exists():
            raise NotFoundError(entity_id)
        return entity

    def _insert_entity(self, parent_id, name, entity_type, properties):
        self._query('INSERT INTO entities '
                    '(parent_id, name, type, properties) '
                    'VALUES (?, ?, ?, ?)',
                    (parent_id, name, entity_type, properties))
        return self.cur.lastrowid

    def add_entity(self, parent_id, name, entity_type, properties):
        """Add an entity under parent_id and return its id."""
        with MySQLLock(self):
            if parent_id:
                self._require_entity(parent_id)
            entity_id = self._insert_entity(parent_id, name, entity_type,
                                            properties)
        logger.info('Added %s %s under %s', entity_type, entity_id,
                    parent_id)
        return entity_id

    def update_entity(self, entity_id, name=None, properties=''):
        """
        Update an entity. properties is a partial update: only the keys
        it holds are changed, and keys with an empty value are removed.
        """
        with MySQLLock(self):
            entity = self._require_entity(entity_id)
            if name is None:
                name = entity.name
            merged = merge_properties(entity.properties, properties)
            self._query('UPDATE entities SET name = ?, properties = ? '
                        'WHERE id = ?', (name, merged, entity_id))
        return True

    def delete_entity(self, entity_id):
        with MySQLLock(self):
            self._require_entity(entity_id)
            self._query('SELECT COUNT(id) FROM entities WHERE parent_id = ?',
                        (entity_id,))
            row = self.cur.fetchone()
            if int(row[0]):
                raise ValueError('Entity {} has children'.format(entity_id))
            self._query('DELETE FROM entities WHERE id = ?', (entity_id,))
        return True

    def get_allocated_ips_by_network_id(self, network_id):
        request_suffix = ''
        if self.dbtype == 'mysql':
            request_suffix = ' FOR UPDATE'
        self._query('SELECT ' + ENTITY_COLUMNS + ' FROM entities '
                    'WHERE parent_id = ? AND type = ? '
                    'ORDER BY id ASC' + request_suffix,
                    (network_id, IP4_ADDRESS))
        iplist = []
        for entity in [self._entity(row) for row in self.cur.fetchall()]:
            address = decode_entity(entity).address
            if address:
                iplist.append(IPAddress(address))
        return iplist

    def get_next_free_ip(self, network_id):
        """
        Find the first free host address of a network. Returns it as an
        IPAddress.
        """
        network = self._require_entity(network_id)
        properties = decode_entity(network, IP4_NETWORK)
        address_count(properties.cidr, network_id)
        subnet = IPNetwork(properties.cidr)
        usedips = set(self.get_allocated_ips_by_network_id(network_id))
        if properties.gateway:
            usedips.add(IPAddress(properties.gateway))

        for candidate_ip in subnet.iter_hosts():
            if candidate_ip not in usedips:
                return candidate_ip
        raise NoCapacityError([network_id])

    def assign_next_available_ip4_address(self, network_id, mac_address='',
                                          action='MAKE_STATIC'):
        """
        Allocate the next free address of a network. Returns the new
        IP4Address entity.
        """
        if action not in IP_ASSIGNMENT_ACTIONS:
            raise ValueError('Unsupported assignment action {}'.format(action))
        with MySQLLock(self):
            ipaddress = self.get_next_free_ip(network_id)
            properties = IP4AddressProperties(
                address=str(ipaddress),
                state=IP_ASSIGNMENT_ACTIONS[action],
                mac_address=mac_address or None,
            )
            entity_id = self._insert_entity(network_id, None, IP4_ADDRESS,
                                            encode(properties))
        logger.info('Assigned %s in network %s', ipaddress, network_id)
        return self.get_entity(entity_id)

    def change_state_ip4_address(self, address_id, action, mac_address=''):
        if action not in IP_ASSIGNMENT_ACTIONS:
            raise ValueError('Unsupported assignment action {}'.format(action))
        properties = IP4AddressProperties(
            state=IP_ASSIGNMENT_ACTIONS[action],
            mac_address=mac_address or None,
        )
        address = self._require_entity(address_id)
        if address.type != IP4_ADDRESS:
            raise ValueError('Entity {} is not an IP4Address'.format(
                address_id))
        return self.update_entity(address_id, properties=encode(properties))

    def __del__(self):
        if hasattr(self, 'db'):
            self.db.close()
