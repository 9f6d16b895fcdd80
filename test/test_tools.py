import gevent
import pytest

from anerd.core import Responder
from anerd.entropycheck import read_entropy_avail
from anerd.probe import probe
import anerd.probe


def test_probe_gets_reply():
    responder = Responder(device='/dev/urandom', size=64, port=0, listen_address='127.0.0.1')
    responder.open()
    greenlet = gevent.spawn(responder.serve)
    try:
        reply = probe('127.0.0.1', port=responder.address[1], size=32)
        assert len(reply) == 32
    finally:
        greenlet.kill()
        responder.stop()


def test_probe_times_out_without_responder():
    responder = Responder(device='/dev/urandom', port=0, listen_address='127.0.0.1')
    responder.open()
    port = responder.address[1]
    responder.stop()
    with pytest.raises(SystemExit) as exit_info:
        anerd.probe.main(['127.0.0.1', '-p', str(port), '-t', '0.2'])
    assert exit_info.value.code == 1


def test_read_entropy_avail(tmp_path):
    path = tmp_path / 'entropy_avail'
    path.write_text('256\n')
    assert read_entropy_avail(str(path)) == 256


def test_probe_reports_socket_errors():
    # broadcast without SO_BROADCAST is refused by the kernel
    with pytest.raises(SystemExit) as exit_info:
        anerd.probe.main(['255.255.255.255', '-t', '0.2'])
    assert exit_info.value.code == 1
