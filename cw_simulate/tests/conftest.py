from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Iterator

import pytest

from cw_simulate.config import AccountSpec, CoinSpec, DelegationSpec, Genesis, Settings, StakingSpec, ValidatorSpec
from cw_simulate.engine import Chain, Simulator, Watcher, discover_artifacts
from cw_simulate.errors import ContractError, UnsupportedRequest

FIXTURES = Path(__file__).parent / "fixtures"
COUNTER = FIXTURES / "counter.py"


def fake_custom(body: Any) -> bytes:
    """Custom-query handler standing in for the network fetch."""
    if isinstance(body, dict) and "echo" in body:
        return json.dumps(body["echo"]).encode("utf-8")
    if isinstance(body, dict) and "boom" in body:
        raise ContractError("boom")
    raise UnsupportedRequest("custom")


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def genesis() -> Genesis:
    return Genesis(
        accounts=[
            AccountSpec(address="alice", balance=[CoinSpec(denom="orai", amount=100), CoinSpec(denom="atom", amount=5)]),
            AccountSpec(address="bob", balance=[CoinSpec(denom="orai", amount=7)]),
        ],
        staking=StakingSpec(
            bonded_denom="orai",
            validators=[ValidatorSpec(address="val1", commission="0.05")],
            delegations=[
                DelegationSpec(delegator="alice", validator="val1", amount=CoinSpec(denom="orai", amount=10)),
            ],
        ),
    )


@pytest.fixture
def chain(settings: Settings, genesis: Genesis) -> Iterator[Chain]:
    with Chain(settings, genesis, custom_handler=fake_custom) as c:
        yield c


@pytest.fixture
def loaded(chain: Chain) -> Chain:
    """Chain with counter, contract_a and contract_b loaded from the fixtures folder."""
    Watcher(chain, discover_artifacts(COUNTER)).load_all()
    return chain


@pytest.fixture
def sim(loaded: Chain) -> Simulator:
    return Simulator(loaded, contract="counter")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Writable copy of the fixtures folder."""
    dest = tmp_path / "ws"
    shutil.copytree(FIXTURES, dest)
    return dest
