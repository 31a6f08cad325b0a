#!/usr/bin/env python

from abc import ABCMeta, abstractmethod

IP4_ADDRESS = 'IP4Address'
IP4_NETWORK = 'IP4Network'
IP4_BLOCK = 'IP4Block'
HOST_RECORD = 'HostRecord'
ALIAS_RECORD = 'AliasRecord'


class Entity:
    """
    Remote IPAM object: integer id, display name, type tag and raw
    properties string. An id of 0 means the lookup found nothing.
    """

    def __init__(self, id, name, type, properties):
        self.id = id
        self.name = name
        self.type = type
        self.properties = properties

    @classmethod
    def empty(cls):
        return cls(0, None, None, None)

    def exists(self):
        return bool(self.id)

    def __eq__(self, other):
        if not isinstance(other, Entity):
            return NotImplemented
        return (self.id, self.name, self.type, self.properties) == \
            (other.id, other.name, other.type, other.properties)

    def __repr__(self):
        return 'Entity({!r}, {!r}, {!r}, {!r})'.format(
            self.id, self.name, self.type, self.properties)


class AbstractEntityAPI(metaclass=ABCMeta):

    @abstractmethod
    def login(self):
        raise NotImplementedError()

    @abstractmethod
    def logout(self):
        raise NotImplementedError()

    @abstractmethod
    def get_entity(self, entity_id):
        raise NotImplementedError()

    @abstractmethod
    def get_entities(self, parent_id, entity_type, start, count):
        raise NotImplementedError()

    @abstractmethod
    def get_entity_by_name(self, parent_id, name, entity_type):
        raise NotImplementedError()

    @abstractmethod
    def add_entity(self, parent_id, name, entity_type, properties):
        raise NotImplementedError()

    @abstractmethod
    def update_entity(self, entity_id, name, properties):
        raise NotImplementedError()

    @abstractmethod
    def delete_entity(self, entity_id):
        raise NotImplementedError()
