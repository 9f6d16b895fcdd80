""" anerd

    Asynchronous network exchange randomness daemon

    See LICENSE file for license information

"""

__version__ = '0.3b1'
__license__ = 'MIT'
