#!/usr/bin/env python

""" anerd Probe

    Sends one exchange datagram to a responder and waits for its answer

    See LICENSE file for license information

"""

# standard libraries
import sys
import logging
import argparse

# pip packages
import gevent
import gevent.socket as socket
from gevent import Timeout

# local modules
import anerd.core
from anerd.pool import EntropyPool

log = logging.getLogger('anerd')

DEFAULT_TIMEOUT = 3


def probe(host, port=anerd.core.DEFAULT_PORT, size=anerd.core.DEFAULT_SIZE,
          device=anerd.core.DEFAULT_DEVICE, timeout=DEFAULT_TIMEOUT):
    '''
        Donates size bytes from the local device to a single responder and
        returns its reply. Raises gevent.Timeout when nothing comes back

    '''
    with EntropyPool(device, mode='read') as pool:
        data = pool.read(size)
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.sendto(data, (host, port))
        log.info('anerd probe: sent [%d] bytes to [%s:%d]', len(data), host, port)
        with Timeout(timeout, gevent.Timeout):
            reply, address = sock.recvfrom(size)
        log.info('anerd probe: received [%d] bytes from [%s]', len(reply), anerd.core.format_address(address))
        return reply
    finally:
        sock.close()


def main(argv=None):
    parser = argparse.ArgumentParser(prog='anerd-probe', description='Run a single anerd exchange')
    parser.add_argument('host', help='responder address')
    parser.add_argument('-p', dest='port', type=int, default=anerd.core.DEFAULT_PORT)
    parser.add_argument('-s', dest='size', type=int, default=anerd.core.DEFAULT_SIZE)
    parser.add_argument('-d', dest='device', default=anerd.core.DEFAULT_DEVICE)
    parser.add_argument('-t', dest='timeout', type=float, default=DEFAULT_TIMEOUT)
    args = parser.parse_args(argv)

    log.setLevel(logging.INFO)
    mainHandler = logging.StreamHandler()
    mainHandler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    log.addHandler(mainHandler)

    try:
        probe(args.host, port=args.port, size=args.size, device=args.device, timeout=args.timeout)
    except anerd.core.SetupError as e:
        log.error('anerd probe: %s', e)
        sys.exit(1)
    except gevent.Timeout:
        log.error('anerd probe: no reply from %s:%d after %s seconds', args.host, args.port, args.timeout)
        sys.exit(1)
    except socket.error as e:
        log.error('anerd probe: exchange with %s:%d failed: %s', args.host, args.port, e)
        sys.exit(1)
    sys.exit(0)

if __name__ == '__main__':
    main()
