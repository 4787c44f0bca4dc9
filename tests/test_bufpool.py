import threading

import pytest

from blestack.bufpool import Pool, PoolClient


def test_pool_starts_full():
    p = Pool(27, 4)
    assert p.available == 4
    assert p.size == 27


def test_get_takes_a_cleared_buffer():
    p = Pool(8, 1)
    c = PoolClient(p)
    b = c.get()
    assert b == bytearray()
    b.extend(b"payload")
    assert p.available == 0
    assert c.in_flight == 1
    c.put()
    again = c.get()
    assert again is b
    assert again == bytearray()


def test_put_without_sent_buffers_is_harmless():
    p = Pool(8, 2)
    c = PoolClient(p)
    c.put()
    assert p.available == 2
    assert c.in_flight == 0


def test_put_returns_oldest_first():
    p = Pool(8, 2)
    c = PoolClient(p)
    first = c.get()
    c.get()
    c.put()
    assert p.available == 1
    assert c.get() is first


def test_put_all_returns_everything():
    p = Pool(8, 3)
    c = PoolClient(p)
    for _ in range(3):
        c.get()
    assert p.available == 0
    c.put_all()
    assert p.available == 3
    assert c.in_flight == 0


def test_clients_share_the_pool():
    p = Pool(8, 2)
    a, b = PoolClient(p), PoolClient(p)
    a.get()
    b.get()
    assert p.available == 0
    b.put_all()
    assert p.available == 1
    assert a.in_flight == 1


def test_get_blocks_until_put():
    p = Pool(8, 1)
    holder = PoolClient(p)
    waiter = PoolClient(p)
    holder.get()
    done = threading.Event()

    def take():
        waiter.get()
        done.set()

    t = threading.Thread(target=take, daemon=True)
    t.start()
    assert not done.wait(0.1)
    holder.put()
    assert done.wait(2)
    t.join(2)
    assert waiter.in_flight == 1


def test_negative_count_rejected():
    with pytest.raises(ValueError):
        Pool(8, -1)


def test_lock_is_usable():
    p = Pool(8, 1)
    with p.lock:
        assert p.lock.locked()
    assert not p.lock.locked()