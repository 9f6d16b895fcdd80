""" anerd entropy pool

    Append/read access to the host randomness device, plus the local
    time-based salt mixed in alongside every peer contribution

    See LICENSE file for license information

"""

# standard libraries
import os
import time
import struct
import logging

# pip packages
from gevent.lock import RLock

# library logger
log = logging.getLogger('anerd')

DEFAULT_DEVICE = '/dev/urandom'

# salts are packed as a single unsigned 64 bit value
SALT_FORMAT = '!Q'
SALT_MASK = (1 << 64) - 1

POOL_MODES = {'append': os.O_RDWR | os.O_APPEND,
              'read': os.O_RDONLY}


class SetupError(Exception):
    '''
        Raised when a role cannot acquire its socket or entropy device

    '''


def clock_micros():
    return int(time.time() * 1000000)


class EntropyPool(object):
    '''
        Entropy pool backed by a randomness device

        The device is opened with os.open so every append is a single
        unbuffered write, visible to the next read without a flush. The
        device is never created, a missing path is a setup error.

    '''
    def __init__(self, device=DEFAULT_DEVICE, mode='read'):
        if mode not in POOL_MODES:
            raise ValueError('unknown pool mode %r' % mode)

        # path to the randomness device, /dev/urandom unless configured
        self.device = device

        self.mode = mode

        # raw file descriptor, None while closed
        self.fd = None

        # serializes append and read if a handle is shared between greenlets
        self.lock = RLock()

    def open(self):
        try:
            self.fd = os.open(self.device, POOL_MODES[self.mode])
        except OSError as e:
            raise SetupError('cannot open entropy device %s: %s' % (self.device, e))
        log.debug('anerd pool: opened %s for %s', self.device, self.mode)
        return self

    @property
    def closed(self):
        return self.fd is None

    def append(self, data):
        '''
            Mixes data into the pool. Loops over partial writes so the
            whole buffer lands in the device before returning

        '''
        if self.closed:
            raise ValueError('append to closed entropy pool')
        view = memoryview(data)
        with self.lock:
            while view:
                written = os.write(self.fd, view)
                view = view[written:]

    def read(self, n):
        '''
            Reads up to n bytes, stopping early only when the device runs dry

        '''
        if self.closed:
            raise ValueError('read from closed entropy pool')
        chunks = []
        remaining = n
        with self.lock:
            while remaining > 0:
                chunk = os.read(self.fd, remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        return b''.join(chunks)

    def close(self):
        if self.fd is not None:
            fd, self.fd = self.fd, None
            os.close(fd)
            log.debug('anerd pool: closed %s', self.device)

    def __enter__(self):
        if self.closed:
            self.open()
        return self

    def __exit__(self, *exc_info):
        self.close()


class Salt(object):
    '''
        Rolling salt derived from the local arrival time of datagrams

        The previous timestamp is seeded from a single clock reading when
        the salt is created, so the first salt is seed * t1 and every
        later one is t(k-1) * t(k). Peers cannot observe either value.

    '''
    def __init__(self, clock=None):
        self.clock = clock or clock_micros
        self.last = self.clock()

    def next(self):
        now = self.clock()
        value = (self.last * now) & SALT_MASK
        self.last = now
        return struct.pack(SALT_FORMAT, value)
