"""
Shared fixtures: a local-simulation auction driven by a manual clock.
"""

import pytest

from sealbid.crypto import generate_keypair
from sealbid.core.auction import InMemoryFundsSink, SealedBidAuction
from sealbid.core.clock import ManualClock
from sealbid.core.config import AuctionConfig, SettlementMode
from sealbid.fhe import LocalCiphertextEngine, LocalDecryptionOracle


ROUND_DURATION = 3600
EMERGENCY_DELAY = 600


# =============================================================================
# Identities
# =============================================================================


@pytest.fixture(scope="session")
def operator():
    return generate_keypair()


@pytest.fixture(scope="session")
def beneficiary():
    return generate_keypair()


@pytest.fixture(scope="session")
def alice():
    return generate_keypair()


@pytest.fixture(scope="session")
def bob():
    return generate_keypair()


@pytest.fixture(scope="session")
def carol():
    return generate_keypair()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fhe():
    return LocalCiphertextEngine()


@pytest.fixture
def oracle(fhe):
    return LocalDecryptionOracle(fhe)


@pytest.fixture
def funds():
    return InMemoryFundsSink()


@pytest.fixture
def config():
    return AuctionConfig(
        min_deposit=1,
        round_duration=ROUND_DURATION,
        emergency_delay=EMERGENCY_DELAY,
    )


def _build(operator, beneficiary, fhe, oracle, funds, clock, config, **kwargs):
    return SealedBidAuction(
        beneficiary=beneficiary.address,
        admin=operator.address,
        engine=fhe,
        oracle=oracle,
        funds=funds,
        clock=clock,
        config=config,
        **kwargs,
    )


@pytest.fixture
def auction(operator, beneficiary, fhe, oracle, funds, clock, config):
    """Pull-settlement auction, round 1 open."""
    return _build(operator, beneficiary, fhe, oracle, funds, clock, config)


@pytest.fixture
def push_auction(operator, beneficiary, fhe, oracle, funds, clock, config):
    """Push-settlement auction, round 1 open."""
    push_config = config.model_copy(update={"settlement_mode": SettlementMode.PUSH})
    return _build(operator, beneficiary, fhe, oracle, funds, clock, push_config)


# =============================================================================
# Helpers
# =============================================================================


@pytest.fixture
def place_bid(fhe):
    """Encrypt, bind and submit a bid for a keypair."""

    def _place(auction, keypair, value, deposit):
        ciphertext, proof = fhe.encrypt_input(value, keypair.address)
        declared_key = keypair.public_key
        signature = auction.verifier.sign_key_binding(keypair.private_key, declared_key)
        auction.submit_bid(ciphertext, proof, declared_key, signature, deposit, keypair.address)

    return _place


@pytest.fixture
def close_round(clock, oracle, operator):
    """Advance past the round end, request finalization and deliver it."""

    def _close(auction):
        clock.set(auction.round_end_time)
        request_id = auction.request_finalize(operator.address)
        oracle.fulfil(request_id)
        return request_id

    return _close
