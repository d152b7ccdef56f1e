import random
from datetime import datetime, timezone

from pairwatch.models import Leg
from pairwatch.signal.pairing import PriceSynchronizer


def test_single_leg_is_buffered_without_pair():
    sync = PriceSynchronizer()
    assert sync.observe(Leg.A, 10.0) is None
    assert sync.state.a.price == 10.0
    assert sync.state.b is None


def test_pair_emitted_and_buffers_cleared():
    sync = PriceSynchronizer()
    sync.observe(Leg.A, 10.0)
    pair = sync.observe(Leg.B, 5.0)
    assert pair is not None
    assert (pair.price_a, pair.price_b) == (10.0, 5.0)
    assert pair.ratio == 2.0
    assert sync.state.a is None and sync.state.b is None


def test_pair_keeps_leg_order_when_b_arrives_first():
    sync = PriceSynchronizer()
    sync.observe(Leg.B, 4.0)
    pair = sync.observe(Leg.A, 2.0)
    assert (pair.price_a, pair.price_b) == (2.0, 4.0)
    assert pair.ratio == 0.5


def test_latest_price_overwrites_unmatched_value():
    sync = PriceSynchronizer()
    assert sync.observe(Leg.A, 10.0) is None
    assert sync.observe(Leg.A, 12.0) is None
    assert sync.state.a.price == 12.0
    pair = sync.observe(Leg.B, 6.0)
    assert pair.price_a == 12.0


def test_duplicate_price_is_a_no_op():
    sync = PriceSynchronizer()
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    t1 = datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    sync.observe(Leg.A, 10.0, at=t0)
    before = sync.state.a
    assert sync.observe(Leg.A, 10.0, at=t1) is None
    assert sync.state.a is before
    assert sync.state.a.observed_at == t0


def test_same_price_after_match_is_not_a_duplicate():
    sync = PriceSynchronizer()
    sync.observe(Leg.A, 10.0)
    sync.observe(Leg.B, 5.0)
    assert sync.observe(Leg.A, 10.0) is None
    assert sync.state.a.price == 10.0


def test_one_pair_per_completion():
    sync = PriceSynchronizer()
    pairs = [sync.observe(leg, p) for leg, p in [(Leg.A, 1.0), (Leg.B, 2.0), (Leg.B, 3.0)]]
    assert [p is not None for p in pairs] == [False, True, False]
    assert sync.state.b.price == 3.0
    assert sync.state.a is None


def test_pair_emitted_iff_both_legs_buffered_random_sequences():
    rng = random.Random(7)
    sync = PriceSynchronizer()
    buf = {Leg.A: None, Leg.B: None}
    emitted = 0
    for _ in range(2000):
        leg = rng.choice([Leg.A, Leg.B])
        price = float(rng.randint(1, 4))
        pair = sync.observe(leg, price)
        if buf[leg] == price:
            assert pair is None
            continue
        buf[leg] = price
        if buf[Leg.A] is not None and buf[Leg.B] is not None:
            assert pair is not None
            assert (pair.price_a, pair.price_b) == (buf[Leg.A], buf[Leg.B])
            buf = {Leg.A: None, Leg.B: None}
            emitted += 1
        else:
            assert pair is None
    assert emitted > 0
