"""
Inheritable boolean settings are stored as "enable" or "disable"; any
other value, or no key at all, means the setting is inherited from the
parent object. Unset is represented by None.
"""

ENABLE = 'enable'
DISABLE = 'disable'


def to_tristate(raw):
    if raw == ENABLE:
        return True
    if raw == DISABLE:
        return False
    return None


def from_tristate(value):
    """Return the wire value, or None when the key must be omitted."""
    if value is None:
        return None
    return ENABLE if value else DISABLE
