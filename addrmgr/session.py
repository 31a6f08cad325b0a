import logging
import threading

from addrmgr.exceptions import CollaboratorError

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 5

# Concurrent sessions under one credential are not safe on the remote
# side: every operation is bracketed by login/logout under this lock.
SESSION_LOCK = threading.Lock()


class APISession:
    """
    Context manager holding the process-wide session lock and a logged in
    API for the duration of the block.

        with APISession(api) as client:
            NetworkSelector(client).select_most_free([1, 2, 3])
    """

    def __init__(self, api, timeout=LOCK_TIMEOUT, lock=SESSION_LOCK):
        self.api = api
        self.timeout = timeout
        self.lock = lock

    def __enter__(self):
        if not self.lock.acquire(timeout=self.timeout):
            e = 'Could not obtain lock within {} seconds.'.format(
                self.timeout)
            raise RuntimeError(e)
        try:
            self.api.login()
        except Exception as e:
            self.lock.release()
            raise CollaboratorError('Login failed: {}'.format(e)) from e
        logger.debug('Logged in')
        return self.api

    def __exit__(self, exception_type, exception_value, exception_traceback):
        try:
            self.api.logout()
        except Exception as e:
            if exception_type is None:
                raise CollaboratorError('Logout failed: {}'.format(e)) from e
            logger.error('Logout failed: %s', e)
        else:
            logger.debug('Logged out')
        finally:
            self.lock.release()
