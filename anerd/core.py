""" anerd

    Asynchronous network exchange randomness daemon

    See LICENSE file for license information

"""

__all__ = ['Responder', 'Donor', 'SetupError']

# standard libraries
import logging

# pip packages
import gevent
import gevent.socket as socket
from zeroconf import Zeroconf, ServiceInfo

# local modules
from anerd import __version__
from anerd.pool import EntropyPool, Salt, SetupError, DEFAULT_DEVICE

DEFAULT_SIZE = 64
DEFAULT_PORT = 26373
DEFAULT_INTERVAL = 60
DEFAULT_LISTEN_ADDRESS = '0.0.0.0'
DEFAULT_BROADCAST_ADDRESS = '<broadcast>'

ZEROCONF_SERVICE_TYPE = '_anerd._udp.local.'

# library logger
log = logging.getLogger('anerd')


def format_address(address):
    return '%s:%d' % (address[0], address[1])


class Responder(object):
    '''
        anerd responder

    '''
    def __init__(self,
                 device=DEFAULT_DEVICE,
                 size=DEFAULT_SIZE,
                 port=DEFAULT_PORT,
                 listen_address=DEFAULT_LISTEN_ADDRESS,
                 use_zeroconf=False,
                 pool=None,
                 salt=None):
        log.debug('anerd responder: initializing')

        # Randomness device that peer contributions get mixed into
        self.device = device

        # Largest datagram accepted, anything longer is truncated by recvfrom
        self.size = size

        # UDP port to listen on
        self.port = port

        # Listen address used by the responder
        self.listen_address = listen_address

        # Entropy pool, opened in append mode during open() unless injected
        self.pool = pool

        # Local time-based salt, seeded when the responder is created
        self.salt = salt or Salt()

        self.sock = None

        self.use_zeroconf = use_zeroconf
        self.zeroconf_controller = None

    @property
    def address(self):
        return self.sock.getsockname()

    def open(self):
        '''
            Acquires the socket, the entropy pool and the bound port. Any
            failure here is fatal for the responder and raised as SetupError

        '''
        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except socket.error as e:
            raise SetupError('anerd responder: cannot create socket: %s' % e)
        if self.pool is None:
            self.pool = EntropyPool(self.device, mode='append')
        if self.pool.closed:
            self.pool.open()
        try:
            self.sock.bind((self.listen_address, self.port))
        except socket.error as e:
            raise SetupError('anerd responder: cannot bind %s:%d: %s' % (self.listen_address, self.port, e))
        log.info('anerd responder: listening on %s with %d byte exchanges', format_address(self.address), self.size)

    def broadcast_service(self):
        if self.listen_address == DEFAULT_LISTEN_ADDRESS:
            raise SetupError('anerd responder: zeroconf cannot use %s as a listen address, please set listen_address in /etc/anerd.conf' % self.listen_address)
        desc = {'version': __version__, 'size': str(self.size)}
        info = ServiceInfo(ZEROCONF_SERVICE_TYPE,
                           '{}.{}'.format(socket.gethostname(), ZEROCONF_SERVICE_TYPE),
                           addresses=[socket.inet_aton(self.listen_address)],
                           port=self.address[1],
                           properties=desc)
        log.info('anerd responder: registering service with zeroconf: %s', info)
        self.zeroconf_controller = Zeroconf()
        # announcements block for about a second, keep them off the hub
        gevent.get_hub().threadpool.apply(self.zeroconf_controller.register_service, (info,))

    def unregister_service(self):
        if self.zeroconf_controller is not None:
            log.info('anerd responder: unregistering all zeroconf services')
            threadpool = gevent.get_hub().threadpool
            threadpool.apply(self.zeroconf_controller.unregister_all_services)
            threadpool.apply(self.zeroconf_controller.close)
            self.zeroconf_controller = None

    def exchange(self, data):
        '''
            Mixes a peer contribution plus a fresh local salt into the pool,
            then reads the same number of bytes back out. The read always
            follows the append, so a peer never sees output that predates
            its own contribution

        '''
        self.pool.append(data + self.salt.next())
        return self.pool.read(len(data))

    def serve(self):
        '''
            Handles one datagram at a time, forever. Errors on a single
            datagram are logged and the next datagram is awaited

        '''
        while True:
            try:
                data, address = self.sock.recvfrom(self.size)
            except socket.error as e:
                log.error('anerd responder: receive failed: %s', e)
                continue
            log.info('anerd responder: Received [%d] bytes from [%s]', len(data), format_address(address))
            if not data:
                log.debug('anerd responder: ignoring empty datagram from %s', format_address(address))
                continue
            try:
                reply = self.exchange(data)
                self.sock.sendto(reply, address)
            except OSError as e:
                log.error('anerd responder: exchange with %s failed: %s', format_address(address), e)
                continue
            log.info('anerd responder: Transmit [%d] bytes to [%s]', len(reply), format_address(address))

    def start(self):
        '''
            Opens the responder and serves datagrams. Blocks caller.

        '''
        self.open()
        if self.use_zeroconf:
            self.broadcast_service()
        self.serve()

    def stop(self):
        '''
            Unregisters the zeroconf service and releases the socket and pool

        '''
        log.debug('anerd responder: stopping')
        self.unregister_service()
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        if self.pool is not None:
            self.pool.close()


class Donor(object):
    '''
        anerd donor

        Periodically broadcasts a chunk of local entropy, inviting any
        responder on the network segment to mix it in and answer

    '''
    def __init__(self,
                 device=DEFAULT_DEVICE,
                 size=DEFAULT_SIZE,
                 port=DEFAULT_PORT,
                 interval=DEFAULT_INTERVAL,
                 broadcast_address=DEFAULT_BROADCAST_ADDRESS,
                 pool=None):
        log.debug('anerd donor: initializing')

        self.device = device

        # Bytes donated per cycle
        self.size = size

        # Port responders listen on
        self.port = port

        # Seconds between donations, nothing is ever donated when <= 0
        self.interval = interval

        self.broadcast_address = broadcast_address

        # Entropy pool, opened read only during open() unless injected
        self.pool = pool

        # Donation buffer, zero filled so a short read still sends size bytes
        self.buffer = bytearray(size)

        self.sock = None

    @property
    def destination(self):
        return (self.broadcast_address, self.port)

    def open(self):
        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except socket.error as e:
            raise SetupError('anerd donor: cannot create socket: %s' % e)
        try:
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        except socket.error as e:
            raise SetupError('anerd donor: cannot enable broadcast: %s' % e)
        if self.pool is None:
            self.pool = EntropyPool(self.device, mode='read')
        if self.pool.closed:
            self.pool.open()
        log.info('anerd donor: donating %d bytes to %s every %s seconds', self.size, format_address(self.destination), self.interval)

    def donate(self):
        '''
            Runs a single donation cycle and returns the number of bytes sent

        '''
        try:
            data = self.pool.read(self.size)
        except OSError as e:
            log.error('anerd donor: reading %s failed: %s', self.device, e)
            return 0
        if not data:
            log.error('anerd donor: no entropy read from %s, skipping this round', self.device)
            return 0
        self.buffer[:len(data)] = data
        try:
            self.sock.sendto(bytes(self.buffer), self.destination)
        except socket.error as e:
            log.error('anerd donor: broadcast to %s failed: %s', format_address(self.destination), e)
            return 0
        log.info('anerd donor: Donated [%d] bytes to [%s]', self.size, format_address(self.destination))
        return self.size

    def run(self):
        while self.interval > 0:
            self.donate()
            gevent.sleep(self.interval)

    def start(self):
        '''
            Opens the donor and donates forever. Returns immediately
            without touching the network when the interval is disabled

        '''
        if self.interval <= 0:
            log.info('anerd donor: interval is %s, donations disabled', self.interval)
            return
        self.open()
        self.run()

    def stop(self):
        log.debug('anerd donor: stopping')
        if self.sock is not None:
            self.sock.close()
            self.sock = None
        if self.pool is not None:
            self.pool.close()
