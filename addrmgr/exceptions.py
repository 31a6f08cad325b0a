class IPAMError(Exception):
    """Base of all addrmgr errors."""


class DecodeError(IPAMError, ValueError):
    """Raised when a properties string holds malformed known-field values.

    errors is a list of (key, value, reason) tuples, one per offending
    field.
    """

    def __init__(self, errors, entity_id=None):
        self.errors = list(errors)
        self.entity_id = entity_id
        details = ', '.join('{}={!r}: {}'.format(key, value, reason)
                            for (key, value, reason) in self.errors)
        if entity_id is not None:
            message = 'Unable to decode properties of entity {}: {}'.format(
                entity_id, details)
        else:
            message = 'Unable to decode properties: {}'.format(details)
        super().__init__(message)


class CapacityError(IPAMError, ValueError):

    def __init__(self, message, container_id=None):
        self.container_id = container_id
        if container_id is not None:
            message = '{} (container {})'.format(message, container_id)
        super().__init__(message)


class NoCapacityError(IPAMError):

    def __init__(self, candidates, errors=None):
        self.candidates = list(candidates)
        self.errors = list(errors or [])
        message = 'No free address in any of networks {}'.format(
            ', '.join(str(c) for c in self.candidates))
        if self.errors:
            message += ' ({} candidate(s) failed: {})'.format(
                len(self.errors),
                '; '.join(str(e) for e in self.errors))
        super().__init__(message)


class NotFoundError(IPAMError):

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__('Entity {} not found'.format(entity_id))


class CollaboratorError(IPAMError):
    """Opaque transport or authentication failure of the remote API."""
