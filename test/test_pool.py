import struct

import pytest

from anerd.pool import EntropyPool, Salt, SetupError


def test_read_returns_requested_bytes():
    with EntropyPool('/dev/urandom', mode='read') as pool:
        assert len(pool.read(64)) == 64
        assert len(pool.read(1)) == 1


def test_append_then_read():
    with EntropyPool('/dev/urandom', mode='append') as pool:
        pool.append(b'AB' + b'\x00' * 8)
        assert len(pool.read(2)) == 2


def test_read_stops_at_end_of_file(tmp_path):
    device = tmp_path / 'device'
    device.write_bytes(b'abc')
    with EntropyPool(str(device), mode='read') as pool:
        assert pool.read(64) == b'abc'
        assert pool.read(64) == b''


def test_append_does_not_create_device(tmp_path):
    device = tmp_path / 'missing'
    with pytest.raises(SetupError):
        EntropyPool(str(device), mode='append').open()
    assert not device.exists()


def test_missing_device_for_reading(tmp_path):
    with pytest.raises(SetupError):
        EntropyPool(str(tmp_path / 'missing'), mode='read').open()


def test_closed_pool():
    pool = EntropyPool('/dev/urandom', mode='read')
    assert pool.closed
    with pytest.raises(ValueError):
        pool.read(1)
    pool.open()
    pool.close()
    pool.close()
    assert pool.closed


def test_unknown_mode():
    with pytest.raises(ValueError):
        EntropyPool('/dev/urandom', mode='write')


def make_clock(*readings):
    readings = iter(readings)
    return lambda: next(readings)


def test_salt_is_eight_bytes():
    salt = Salt()
    assert len(salt.next()) == 8


def test_salt_seeded_from_single_reading():
    salt = Salt(clock=make_clock(1000, 2000, 3000))
    assert struct.unpack('!Q', salt.next())[0] == 1000 * 2000
    assert struct.unpack('!Q', salt.next())[0] == 2000 * 3000


def test_salt_differs_for_distinct_timestamp_pairs():
    salt = Salt(clock=make_clock(1700000000000001, 1700000000000002, 1700000000000003))
    first = salt.next()
    second = salt.next()
    assert first != second


def test_salt_wraps_large_products():
    big = 1 << 40
    salt = Salt(clock=make_clock(big, big + 1))
    assert struct.unpack('!Q', salt.next())[0] == (big * (big + 1)) & ((1 << 64) - 1)
