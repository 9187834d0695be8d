"""
Shared fixtures: an in-memory stand-in for AsyncWeb3 contract calls and
scriptable venue adapters.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from web3.exceptions import ContractLogicError

from dex.types import (
    FailureReason,
    Quote,
    QuoteFailure,
    TokenRef,
    VenueConfig,
    VenueKind,
)

USDC = TokenRef("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6)
DAI = TokenRef("0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb", "DAI", 18)
WETH = TokenRef("0x4200000000000000000000000000000000000006", "WETH", 18)

QUOTER = "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a"
FACTORY = "0x33128a8fC17869897dcE68Ed026d694621f6FDfD"
ROUTER = "0x6e086AbE2ECB3f660b15Fb3a3ef0028BE6a4a1e0"
SETTLEMENT = "0x1111111111111111111111111111111111111111"


class FakeCall:
    """A bound contract function: ``.call()`` / ``.estimate_gas()``."""

    def __init__(self, chain: "FakeChain", address: str, fn_name: str, args: tuple):
        self.chain = chain
        self.address = address
        self.fn_name = fn_name
        self.args = args

    async def call(self):
        return await self.chain.invoke(self.address, self.fn_name, self.args)

    async def estimate_gas(self):
        return await self.chain.invoke(
            self.address, f"{self.fn_name}.estimate_gas", self.args
        )


class FakeFunctions:
    def __init__(self, chain: "FakeChain", address: str):
        self._chain = chain
        self._address = address

    def __getattr__(self, name: str):
        def bind(*args):
            return FakeCall(self._chain, self._address, name, args)

        return bind


class FakeContract:
    def __init__(self, chain: "FakeChain", address: str):
        self.address = address
        self.functions = FakeFunctions(chain, address)


class FakeEth:
    def __init__(self, chain: "FakeChain"):
        self._chain = chain

    def contract(self, address: str, abi: Any):
        return FakeContract(self._chain, address)

    @property
    def gas_price(self):
        return self._chain.read_gas_price()


class FakeChain:
    """
    Scriptable chain. Handlers are registered per (address, function);
    an unregistered call reverts like a missing pool would.
    """

    def __init__(self):
        self.handlers: Dict[Tuple[str, str], Callable] = {}
        self.calls: List[Tuple[str, str, tuple]] = []
        self.gas_price: Any = 20 * 10**9
        self.eth = FakeEth(self)

    def on(self, address: str, fn_name: str, handler: Callable):
        self.handlers[(address.lower(), fn_name)] = handler

    def calls_to(self, fn_name: str) -> List[tuple]:
        return [args for _, name, args in self.calls if name == fn_name]

    async def invoke(self, address: str, fn_name: str, args: tuple):
        self.calls.append((address, fn_name, args))
        handler = self.handlers.get((address.lower(), fn_name))
        if handler is None:
            raise ContractLogicError("execution reverted")
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def read_gas_price(self):
        if isinstance(self.gas_price, Exception):
            raise self.gas_price
        return self.gas_price


class StubAdapter:
    """
    Adapter double answering from a table keyed by (in symbol, out symbol).

    Table values are an int amount, a FailureReason, an exception to raise
    or ``"hang"`` to never answer.
    """

    def __init__(self, name: str, table: Optional[Dict[Tuple[str, str], Any]] = None):
        self.name = name
        self.table = table or {}
        self.requests: List[Tuple[str, str, int]] = []

    async def quote(self, token_in: TokenRef, token_out: TokenRef, amount_in: int):
        self.requests.append((token_in.symbol, token_out.symbol, amount_in))
        answer = self.table.get((token_in.symbol, token_out.symbol), FailureReason.NO_POOL)
        if answer == "hang":
            await asyncio.Event().wait()
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, FailureReason):
            return QuoteFailure(venue=self.name, reason=answer)
        return Quote(
            venue=self.name,
            token_in=token_in.address,
            token_out=token_out.address,
            amount_in=amount_in,
            amount_out=answer,
        )


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def tokens():
    return {"USDC": USDC, "DAI": DAI, "WETH": WETH}


@pytest.fixture
def stub_adapter():
    return StubAdapter


@pytest.fixture
def venue():
    """Factory for VenueConfig with test defaults."""

    def make(kind: VenueKind, address: str = ROUTER, name: Optional[str] = None, **kwargs):
        return VenueConfig(
            name=name or kind.value,
            kind=kind,
            address=address,
            **kwargs,
        )

    return make
