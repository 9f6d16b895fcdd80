#!/usr/bin/env python

import codecs
from os.path import join, dirname
from setuptools import setup

def read_file(name, *args):
    try:
        return codecs.open(join(dirname(__file__), name),  encoding='utf-8').read(*args)
    except OSError:
        return ''


setup(name='anerd',
    version='0.3b1',
    description='Asynchronous network exchange randomness daemon',
    long_description=read_file('README.rst'),
    entry_points={
        'console_scripts': [
            'anerd = anerd.daemon:main',
            'anerd-probe = anerd.probe:main',
            'anerd-entropycheck = anerd.entropycheck:main',
        ]
    },
    data_files=[('conf',  ['conf/anerd.conf.sample', 'conf/anerd.service'])],
    packages=['anerd'],
    license='MIT',
    keywords='rng entropy random udp broadcast',
    platforms = 'any',
    python_requires='>=3.8',
    install_requires = ['gevent>=22.10', 'zeroconf>=0.38'],
    extras_require = {'test': ['pytest']},
    classifiers=['Development Status :: 4 - Beta',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Topic :: Security',
        'Topic :: System :: Networking',
    ],
)
