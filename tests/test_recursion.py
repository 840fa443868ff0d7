import dns.message
import dns.rdatatype
import pytest

from dnsrelay.recursion import RecursionDetector, msg_to_signature


class FakeClock:
    def __init__(self):
        self.now = 50.0

    def __call__(self):
        return self.now


def make_msg(name="example.org.", rdtype=dns.rdatatype.A, msg_id=1234):
    msg = dns.message.make_query(name, rdtype)
    msg.id = msg_id
    return msg


def test_add_then_check():
    detector = RecursionDetector(clock=FakeClock())
    msg = make_msg()

    assert detector.check(msg) is False
    detector.add(msg)
    assert detector.check(msg) is True


def test_expires_after_ttl():
    clock = FakeClock()
    detector = RecursionDetector(ttl=1.0, clock=clock)
    msg = make_msg()
    detector.add(msg)

    clock.now += 0.5
    assert detector.check(msg) is True

    clock.now += 0.5
    assert detector.check(msg) is False


def test_different_id_or_type_not_detected():
    detector = RecursionDetector(clock=FakeClock())
    detector.add(make_msg(msg_id=1))

    assert detector.check(make_msg(msg_id=2)) is False
    assert detector.check(make_msg(msg_id=1, rdtype=dns.rdatatype.AAAA)) is False


def test_clear():
    detector = RecursionDetector(clock=FakeClock())
    msg = make_msg()
    detector.add(msg)
    detector.clear()

    assert detector.check(msg) is False


def test_empty_question_ignored():
    detector = RecursionDetector(clock=FakeClock())
    msg = dns.message.Message(id=7)
    detector.add(msg)

    assert detector.check(msg) is False


def test_lru_eviction():
    detector = RecursionDetector(max_count=2, clock=FakeClock())
    first, second, third = make_msg(msg_id=1), make_msg(msg_id=2), make_msg(msg_id=3)
    detector.add(first)
    detector.add(second)
    detector.add(third)

    assert detector.check(first) is False
    assert detector.check(second) is True
    assert detector.check(third) is True


def test_signature_layout():
    msg = make_msg(name="example.org.", msg_id=0x1234)
    sig = msg_to_signature(msg)

    assert sig[:2] == (0x1234).to_bytes(2, "big")
    assert sig[2:4] == int(dns.rdatatype.A).to_bytes(2, "big")
    assert sig[4:4 + len(b"example.org.")] == b"example.org."
    assert len(sig) == 257


def test_signature_fixed_size():
    short = msg_to_signature(make_msg(name="a."))
    long = msg_to_signature(make_msg(name="b" * 60 + "." + "c" * 60 + "."))

    assert len(short) == len(long)


def test_signature_requires_question():
    with pytest.raises(ValueError):
        msg_to_signature(dns.message.Message(id=1))