#!/usr/bin/env python

""" anerd Entropy Check

    Watches the kernel entropy estimate while exchanges stir the pool

    See LICENSE file for license information

"""

# standard libraries
import sys
import logging
import time
import argparse

log = logging.getLogger('anerd')

PROC_ENTROPY_AVAIL = '/proc/sys/kernel/random/entropy_avail'


def read_entropy_avail(path=PROC_ENTROPY_AVAIL):
    with open(path, 'r') as entropy_avail:
        return int(entropy_avail.readline())


# main program loop
def main(argv=None):
    parser = argparse.ArgumentParser(prog='anerd-entropycheck', description='Log the kernel entropy estimate')
    parser.add_argument('-i', dest='interval', type=float, default=1, help='seconds between readings')
    args = parser.parse_args(argv)

    log.setLevel(logging.INFO)
    mainHandler = logging.StreamHandler()
    mainHandler.setFormatter(logging.Formatter('%(levelname)s %(asctime)s - %(module)s - %(funcName)s: %(message)s'))
    log.addHandler(mainHandler)

    try:
        while True:
            log.info('Entropy in pool: %d', read_entropy_avail())
            time.sleep(args.interval)
    except KeyboardInterrupt as e:
        log.debug('Exiting due to keyboard interrupt')
        sys.exit(0)


if __name__ == '__main__':
    main()
