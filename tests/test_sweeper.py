# tests/test_sweeper.py
import asyncio
from datetime import timedelta

import pytest

from smartwill_gate.services.challenge_store import InMemoryChallengeRepository
from smartwill_gate.services.otp import InMemoryOneTimeCodeStore
from smartwill_gate.services.signature import SignatureVerifier
from smartwill_gate.services.sweeper import ExpirySweeper
from smartwill_gate.services.wallet_auth import WalletAuthService


@pytest.fixture
def challenges():
    return InMemoryChallengeRepository()


@pytest.fixture
def codes(clock):
    return InMemoryOneTimeCodeStore(clock=clock, ttl=timedelta(minutes=15))


@pytest.fixture
def wallet_auth(challenges, clock):
    return WalletAuthService(challenges, SignatureVerifier(), clock=clock)


def _populate(wallet_auth, codes, wallet, clock):
    wallet_auth.issue_challenge(wallet.address)
    codes.issue_code("alice@example.com", {"name": "Alice"})
    clock.advance(minutes=20)


def test_run_once_sweeps_both_stores(wallet_auth, codes, challenges, wallet, clock):
    _populate(wallet_auth, codes, wallet, clock)
    codes.issue_code("bob@example.com", {"name": "Bob"})

    sweeper = ExpirySweeper(wallet_auth, codes, interval_seconds=60)

    assert sweeper.run_once() == (1, 1)
    assert len(challenges) == 0
    assert len(codes) == 1


def test_interval_has_a_floor(wallet_auth, codes):
    assert ExpirySweeper(wallet_auth, codes, interval_seconds=0).interval_seconds > 0


@pytest.mark.asyncio
async def test_sweeper_runs_in_background(wallet_auth, codes, challenges, wallet, clock):
    _populate(wallet_auth, codes, wallet, clock)
    sweeper = ExpirySweeper(wallet_auth, codes, interval_seconds=0.01)

    await sweeper.start()
    assert sweeper.running
    try:
        for _ in range(100):
            if len(challenges) == 0 and len(codes) == 0:
                break
            await asyncio.sleep(0.01)
    finally:
        await sweeper.stop()

    assert not sweeper.running
    assert len(challenges) == 0
    assert len(codes) == 0


@pytest.mark.asyncio
async def test_stop_is_prompt_and_idempotent(wallet_auth, codes):
    sweeper = ExpirySweeper(wallet_auth, codes, interval_seconds=3600)

    await sweeper.start()
    await asyncio.wait_for(sweeper.stop(), timeout=1)
    await sweeper.stop()

    assert not sweeper.running


@pytest.mark.asyncio
async def test_sweep_errors_do_not_stop_the_loop(wallet_auth, codes, mocker):
    sweeper = ExpirySweeper(wallet_auth, codes, interval_seconds=0.01)
    outcomes = iter([ValueError("boom")])

    def flaky_sweep():
        error = next(outcomes, None)
        if error is not None:
            raise error
        return (0, 0)

    run_once = mocker.patch.object(sweeper, "run_once", side_effect=flaky_sweep)

    await sweeper.start()
    for _ in range(100):
        if run_once.call_count >= 2:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert run_once.call_count >= 2
