#!/usr/bin/env python

""" anerd Daemon

    Asynchronous network exchange randomness daemon

    See LICENSE file for license information

"""

# standard libraries
import sys
import signal
import logging
import logging.handlers
import argparse
import configparser

# pip packages
import gevent

# local modules
import anerd.core

DEFAULT_CONFIG = '/etc/anerd.conf'
SYSLOG_ADDRESS = '/dev/log'

ROLES = ('both', 'responder', 'donor')

'''
    Config

'''
config_defaults = dict()

global_defaults = {'roles': 'both',
                   'debug': 'no',
                   'syslog': 'no'}

exchange_defaults = {'device': anerd.core.DEFAULT_DEVICE,
                     'size': str(anerd.core.DEFAULT_SIZE),
                     'port': str(anerd.core.DEFAULT_PORT),
                     'listen_address': anerd.core.DEFAULT_LISTEN_ADDRESS,
                     'zeroconf': 'no'}

donor_defaults = {'interval': str(anerd.core.DEFAULT_INTERVAL),
                  'broadcast_address': anerd.core.DEFAULT_BROADCAST_ADDRESS}

config_defaults.update(global_defaults)
config_defaults.update(exchange_defaults)
config_defaults.update(donor_defaults)


'''
    Logging setup

'''

log = logging.getLogger('anerd')


def setup_logging(debug=False, use_syslog=False):
    if debug:
        log.setLevel(logging.DEBUG)
    else:
        log.setLevel(logging.INFO)
    mainHandler = logging.StreamHandler()
    mainHandler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    log.addHandler(mainHandler)
    if use_syslog:
        syslogHandler = logging.handlers.SysLogHandler(address=SYSLOG_ADDRESS,
                                                       facility=logging.handlers.SysLogHandler.LOG_DAEMON)
        syslogHandler.ident = 'anerd: '
        syslogHandler.setFormatter(logging.Formatter('%(message)s'))
        log.addHandler(syslogHandler)


def load_config(path=DEFAULT_CONFIG):
    anerd_config = configparser.ConfigParser(defaults=config_defaults)
    anerd_config.read(path)
    for section in ('Global', 'Exchange', 'Donor'):
        if not anerd_config.has_section(section):
            anerd_config.add_section(section)
    return anerd_config


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='anerd',
                                     description='Asynchronous network exchange randomness daemon')
    parser.add_argument('-c', '--config', default=DEFAULT_CONFIG, help='configuration file')
    parser.add_argument('-d', dest='device', help='entropy device (default %s)' % anerd.core.DEFAULT_DEVICE)
    parser.add_argument('-i', dest='interval', type=float, help='seconds between donations, 0 disables (default %d)' % anerd.core.DEFAULT_INTERVAL)
    parser.add_argument('-p', dest='port', type=int, help='UDP port (default %d)' % anerd.core.DEFAULT_PORT)
    parser.add_argument('-s', dest='size', type=int, help='exchange size in bytes (default %d)' % anerd.core.DEFAULT_SIZE)
    parser.add_argument('-r', '--roles', choices=ROLES, help='roles to run (default both)')
    parser.add_argument('--debug', action='store_true', default=None, help='debug logging')
    parser.add_argument('--syslog', action='store_true', default=None, help='also log to syslog')
    return parser.parse_args(argv)


def build_settings(args):
    '''
        Merges the configuration file with command line flags, flags win

    '''
    anerd_config = load_config(args.config)
    settings = {'roles': anerd_config.get('Global', 'roles'),
                'debug': anerd_config.getboolean('Global', 'debug'),
                'syslog': anerd_config.getboolean('Global', 'syslog'),
                'device': anerd_config.get('Exchange', 'device'),
                'size': anerd_config.getint('Exchange', 'size'),
                'port': anerd_config.getint('Exchange', 'port'),
                'listen_address': anerd_config.get('Exchange', 'listen_address'),
                'zeroconf': anerd_config.getboolean('Exchange', 'zeroconf'),
                'interval': anerd_config.getfloat('Donor', 'interval'),
                'broadcast_address': anerd_config.get('Donor', 'broadcast_address')}
    for key in ('roles', 'debug', 'syslog', 'device', 'size', 'port', 'interval'):
        value = getattr(args, key)
        if value is not None:
            settings[key] = value
    return settings


def build_roles(settings):
    roles = []
    if settings['roles'] in ('both', 'responder'):
        roles.append(anerd.core.Responder(device=settings['device'],
                                          size=settings['size'],
                                          port=settings['port'],
                                          listen_address=settings['listen_address'],
                                          use_zeroconf=settings['zeroconf']))
    if settings['roles'] in ('both', 'donor'):
        roles.append(anerd.core.Donor(device=settings['device'],
                                      size=settings['size'],
                                      port=settings['port'],
                                      interval=settings['interval'],
                                      broadcast_address=settings['broadcast_address']))
    return roles


def run_role(role):
    '''
        Top of a role greenlet. Setup failures end this role only, with
        status 1, and never reach the sibling role

    '''
    name = type(role).__name__.lower()
    try:
        role.start()
    except anerd.core.SetupError as e:
        log.error('anerd: fatal %s error: %s', name, e)
        return 1
    except gevent.GreenletExit:
        log.debug('anerd: %s greenlet exiting due to graceful quit', name)
        return 0
    except Exception as e:
        log.exception('anerd: %s failed: %s', name, e)
        return 1
    finally:
        role.stop()
    log.debug('anerd: %s finished', name)
    return 0


def run(roles):
    '''
        Spawns one greenlet per role and waits for all of them. Returns the
        worst exit status reported by any role

    '''
    log.debug('anerd: spawning greenlets for %s', ', '.join(type(role).__name__ for role in roles))
    greenlets = [gevent.spawn(run_role, role) for role in roles]

    def shutdown():
        log.info('anerd: shutting down')
        gevent.killall(greenlets, block=False)

    handlers = [gevent.signal_handler(signal.SIGTERM, shutdown),
                gevent.signal_handler(signal.SIGINT, shutdown)]
    try:
        gevent.joinall(greenlets)
    finally:
        for handler in handlers:
            handler.cancel()
    # a killed greenlet holds a GreenletExit instead of a status
    return max([greenlet.value if isinstance(greenlet.value, int) else 0 for greenlet in greenlets] + [0])


'''
    Select roles based on configuration and start

'''

def main(argv=None):
    settings = build_settings(parse_args(argv))
    setup_logging(debug=settings['debug'], use_syslog=settings['syslog'])
    roles = build_roles(settings)
    if not roles:
        log.error('anerd: no roles selected, quitting')
        sys.exit(1)
    sys.exit(run(roles))

if __name__ == '__main__':
    main()
