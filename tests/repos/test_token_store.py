"""Single-use reference store tests.

The store's one job: a payload stored under a token comes back exactly
once.  The concurrency test races many threads on the same token the way
parallel token requests would.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from oauth_testserver.repos.token_store import SingleUseReferenceStore


def test_receive_returns_the_created_payload() -> None:
    store = SingleUseReferenceStore()
    token = store.create("ticket-payload")
    assert store.receive(token) == "ticket-payload"


def test_second_receive_finds_nothing() -> None:
    store = SingleUseReferenceStore()
    token = store.create("ticket-payload")
    store.receive(token)
    assert store.receive(token) is None
    assert store.receive(token) is None


def test_unknown_token_is_absent_not_an_error() -> None:
    store = SingleUseReferenceStore()
    assert store.receive("never-issued") is None


def test_empty_payload_is_still_found() -> None:
    store = SingleUseReferenceStore()
    token = store.create("")
    assert store.receive(token) == ""
    assert store.receive(token) is None


def test_tokens_are_128_bit_hex_and_unique() -> None:
    store = SingleUseReferenceStore()
    tokens = {store.create("x") for _ in range(1000)}
    assert len(tokens) == 1000
    for token in tokens:
        assert len(token) == 32
        int(token, 16)  # raises ValueError if not hex


def test_entries_are_independent() -> None:
    store = SingleUseReferenceStore()
    a = store.create("a")
    b = store.create("b")
    assert store.receive(b) == "b"
    assert store.receive(a) == "a"
    assert len(store) == 0


def test_stores_do_not_share_entries() -> None:
    first = SingleUseReferenceStore()
    second = SingleUseReferenceStore()
    token = first.create("payload")
    assert second.receive(token) is None
    assert first.receive(token) == "payload"


def test_concurrent_receive_delivers_exactly_once() -> None:
    """N threads race on one token: one winner, N-1 misses."""
    store = SingleUseReferenceStore()
    callers = 32

    for _ in range(20):
        token = store.create("the-ticket")
        barrier = threading.Barrier(callers)

        def racer() -> str | None:
            barrier.wait()
            return store.receive(token)

        with ThreadPoolExecutor(max_workers=callers) as pool:
            results = list(pool.map(lambda _: racer(), range(callers)))

        winners = [r for r in results if r is not None]
        assert winners == ["the-ticket"]
        assert results.count(None) == callers - 1


def test_concurrent_create_and_receive_lose_nothing() -> None:
    store = SingleUseReferenceStore()

    def round_trip(i: int) -> bool:
        token = store.create(f"payload-{i}")
        return store.receive(token) == f"payload-{i}"

    with ThreadPoolExecutor(max_workers=16) as pool:
        outcomes = list(pool.map(round_trip, range(500)))

    assert all(outcomes)
    assert len(store) == 0
