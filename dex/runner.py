"""
Cross-DEX arbitrage scan loop.

For every (base asset, token) pair the runner quotes the buy leg on all
venues, feeds the best buy output into the sell leg on all venues, nets
out gas and classifies the round trip. The best candidate of a cycle is
handed to the executor when it is profitable. Cycles run strictly one
after another; a failed cycle is logged and followed by a cooldown.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from web3 import AsyncWeb3

from crossdex_arbitrage.exceptions import NetworkError
from crossdex_arbitrage.utils import format_duration, get_current_timestamp, get_logger

from .adapters import QuoteAdapter, build_adapter
from .config import DexConfig
from .executor import ExecutionRequest, Executor, ScanOnlyExecutor, can_execute
from .fanout import fan_out
from .live_costs import GasCostEstimator
from .metrics import ScanMetrics
from .observability import LoggingSink, ObservabilitySink, notify
from .opportunity_math import evaluate, select_best_opportunity
from .types import CycleRecord, Opportunity, TokenRef, TradeRecord, TradeStatus

logger = get_logger(__name__)

CHAIN_NAMES = {
    1: "Ethereum Mainnet",
    8453: "Base",
    42161: "Arbitrum",
    10: "Optimism",
    137: "Polygon",
}


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"


@dataclass(frozen=True)
class Candidate:
    """An evaluated pair together with the tokens it was built from."""

    opportunity: Opportunity
    base: TokenRef
    token: TokenRef


@dataclass(frozen=True)
class CycleResult:
    """Everything one scan cycle produced."""

    candidates: List[Candidate] = field(default_factory=list)
    best: Optional[Candidate] = None
    trade: Optional[TradeRecord] = None
    metrics: ScanMetrics = field(default_factory=ScanMetrics)
    duration: float = 0.0


class DexRunner:
    """
    Polling engine over one network's venue and token catalog.

    Attributes:
        config: Resolved DexConfig
        web3: AsyncWeb3 instance (set by connect() or injected)
        executor: Receives profitable opportunities
        sink: Receives price, cycle and trade records
        once: Run a single cycle and stop
    """

    def __init__(
        self,
        config: DexConfig,
        web3: Any = None,
        executor: Optional[Executor] = None,
        sink: Optional[ObservabilitySink] = None,
        once: bool = False,
        quiet: bool = False,
    ):
        self.config = config
        self.executor: Executor = executor or ScanOnlyExecutor()
        self.sink: ObservabilitySink = sink or LoggingSink()
        self.once = once
        self.quiet = quiet
        self.web3 = None
        self.adapters: List[QuoteAdapter] = []
        self.gas_estimator: Optional[GasCostEstimator] = None
        if web3 is not None:
            self.attach(web3)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def attach(self, web3: Any):
        """Bind a web3 instance and build adapters and the gas estimator."""
        self.web3 = web3
        self.adapters = [
            build_adapter(
                venue,
                web3,
                bridge=self.config.bridge_token,
                retry_policy=self.config.retry_policy,
                call_timeout_ms=self.config.quote_timeout_ms,
            )
            for venue in self.config.venues
        ]
        self.gas_estimator = GasCostEstimator(
            web3,
            self.config.native_token,
            adapters=self.adapters,
            settlement_address=self.config.contract_address,
            fallbacks=self.config.gas_fallbacks,
            price_cache_ttl=self.config.price_cache_ttl,
            timeout_ms=self.config.quote_timeout_ms,
            venue_timeout_ms=self.config.venue_timeout_ms,
        )
        logger.debug(f"Built adapters: {self.adapters}")

    async def connect(self, fallback_rpcs: Sequence[str] = ()):
        """
        Connect to the configured RPC (then any fallbacks) and verify the chain.

        Raises:
            NetworkError: No endpoint answered with the expected chain id
        """
        last_error: Optional[Exception] = None
        for rpc_url in [self.config.rpc_url, *fallback_rpcs]:
            if not rpc_url:
                continue
            try:
                logger.info(f"Connecting to RPC: {rpc_url}")
                web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
                chain_id = await web3.eth.chain_id
                if chain_id != self.config.chain_id:
                    raise NetworkError(
                        f"Wrong chain: expected {self.config.chain_id}, got {chain_id}",
                        endpoint=rpc_url,
                    )
                block = await web3.eth.block_number
                chain_name = CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")
                logger.info(f"✓ Connected to {chain_name} (block #{block:,})")
                self.attach(web3)
                return
            except Exception as e:
                last_error = e
                logger.warning(f"RPC connection failed: {e}")

        raise NetworkError(
            f"Failed to connect to any RPC endpoint. Last error: {last_error}",
            endpoint=self.config.rpc_url,
        )

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def scan_pair(
        self, base: TokenRef, token: TokenRef, metrics: ScanMetrics
    ) -> Tuple[Opportunity, ScanMetrics]:
        """
        Evaluate the round trip base -> token -> base.

        The buy leg fully resolves before the sell leg starts, because the
        sell input is the best buy output.
        """
        if self.gas_estimator is None:
            raise RuntimeError("No web3 attached. Call connect() or attach() first.")

        cfg = self.config
        pair = f"{base.symbol}/{token.symbol}"
        amount_in = cfg.trade_amount_for(base)
        min_profit = cfg.min_profit_for(base)
        timeout_ms = cfg.venue_timeout_ms

        buy = await fan_out(self.adapters, base, token, amount_in, timeout_ms, self.sink)
        metrics = metrics.record_fanout(buy)
        best_buy = buy.best()

        sell_quotes = []
        gas_cost = 0
        if best_buy is not None:
            sell = await fan_out(
                self.adapters, token, base, best_buy.amount_out, timeout_ms, self.sink
            )
            metrics = metrics.record_fanout(sell)
            sell_quotes = sell.quotes
            if sell_quotes:
                gas_units = await self.gas_estimator.estimate_gas_units(
                    base, amount_in, min_profit
                )
                gas_cost = await self.gas_estimator.estimate_gas_cost(gas_units, base)
            else:
                logger.debug(f"{pair}: sell leg failed ({sell.summary()})")
        else:
            logger.debug(f"{pair}: buy leg failed ({buy.summary()})")

        opportunity = evaluate(
            buy.quotes,
            sell_quotes,
            amount_in,
            gas_cost,
            min_profit,
            pair=pair,
            settlement_decimals=base.decimals,
        )
        metrics = metrics.record_evaluation(opportunity)
        if not self.quiet:
            logger.info(opportunity.format_log())
        return opportunity, metrics

    async def run_cycle(
        self,
        metrics: Optional[ScanMetrics] = None,
        cycle_timeout: Optional[float] = None,
    ) -> CycleResult:
        """
        One full scan over every configured pair, then the execution hand-off.

        ``cycle_timeout`` bounds the scan only. Once a candidate is handed
        to the executor the submission runs to completion.

        Args:
            metrics: Accumulator carried over from previous cycles
            cycle_timeout: Scan budget in seconds (None for no limit)

        Returns:
            CycleResult with the updated metrics

        Raises:
            asyncio.TimeoutError: The scan exceeded ``cycle_timeout``
        """
        metrics = metrics or ScanMetrics()
        started = time.monotonic()

        candidates, metrics = await asyncio.wait_for(self._scan_pairs(metrics), cycle_timeout)

        best_opp = select_best_opportunity(c.opportunity for c in candidates)
        best = next((c for c in candidates if c.opportunity is best_opp), None)

        trade = None
        ok, reason = can_execute(best_opp)
        if ok:
            request = ExecutionRequest.from_opportunity(
                best.opportunity,
                best.base,
                best.token,
                safety_margin_bps=self.config.safety_margin_bps,
            )
            trade = await self._execute(request)
            metrics = metrics.record_trade(trade)
        elif best_opp is not None:
            logger.debug(f"Best candidate {best_opp.pair} not executed: {reason}")

        notify(
            self.sink.record_cycle,
            CycleRecord(
                timestamp=get_current_timestamp(),
                opportunity_found=bool(best_opp and best_opp.profitable),
                profit=best_opp.net_profit if best_opp else None,
                gas_cost=best_opp.gas_cost if best_opp else None,
                decimals=best_opp.settlement_decimals if best_opp else 0,
            ),
        )

        duration = time.monotonic() - started
        metrics = metrics.record_cycle(duration)
        self._log_cycle(best_opp, trade, metrics, duration)
        return CycleResult(
            candidates=candidates,
            best=best,
            trade=trade,
            metrics=metrics,
            duration=duration,
        )

    async def _scan_pairs(
        self, metrics: ScanMetrics
    ) -> Tuple[List[Candidate], ScanMetrics]:
        candidates: List[Candidate] = []
        for base, token in self.config.pairs():
            opportunity, metrics = await self.scan_pair(base, token, metrics)
            candidates.append(Candidate(opportunity, base, token))
        return candidates, metrics

    async def _execute(self, request: ExecutionRequest) -> TradeRecord:
        """Hand off to the executor; an executor crash is recorded as a failed trade."""
        logger.info(f"Executing {request.describe()}")
        try:
            trade = await self.executor.execute(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Executor failed for {request.pair}: {e}")
            trade = TradeRecord(status=TradeStatus.FAILED, error=str(e))

        if trade.status == TradeStatus.FAILED:
            logger.warning(f"Trade failed for {request.pair}: {trade.error}")
        elif trade.status == TradeStatus.SUCCESS:
            logger.info(
                f"Trade succeeded for {request.pair}: tx={trade.tx_hash} "
                f"gas_used={trade.gas_used} profit={trade.realized_profit}"
            )
        notify(self.sink.record_trade, trade)
        return trade

    def _log_cycle(
        self,
        best: Optional[Opportunity],
        trade: Optional[TradeRecord],
        metrics: ScanMetrics,
        duration: float,
    ):
        c = Colors
        if best is None:
            verdict = f"{c.DIM}no quote pairs{c.RESET}"
        elif best.profitable:
            verdict = f"{c.GREEN}{best.format_log()}{c.RESET}"
        else:
            verdict = f"{c.YELLOW}{best.format_log()}{c.RESET}"
        trade_str = f" | trade={trade.status.value}" if trade else ""
        logger.info(
            f"Cycle {metrics.cycles} ({format_duration(duration)}): best {verdict}{trade_str}"
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def print_banner(self):
        c = Colors
        cfg = self.config
        print(f"\n{c.CYAN}{c.BOLD}{'═' * 80}{c.RESET}")
        print(f"{c.CYAN}{c.BOLD}  CROSS-DEX ARBITRAGE SCANNER{c.RESET}")
        print(f"{c.CYAN}{'═' * 80}{c.RESET}\n")
        print(
            f"  {c.DIM}Network:{c.RESET} {cfg.network_name} (chain {cfg.chain_id}) | "
            f"{c.DIM}Venues:{c.RESET} {', '.join(v.name for v in cfg.venues)}"
        )
        print(
            f"  {c.DIM}Trade Size:{c.RESET} {cfg.trade_amount} | "
            f"{c.DIM}Min Profit:{c.RESET} {cfg.min_profit} | "
            f"{c.DIM}Pairs:{c.RESET} {len(cfg.pairs())} | "
            f"{c.DIM}Mode:{c.RESET} {'scan only' if cfg.scan_only else 'execute'}"
        )
        print(f"\n{c.CYAN}{'═' * 80}{c.RESET}\n")

    async def run(
        self,
        metrics: Optional[ScanMetrics] = None,
        max_cycles: Optional[int] = None,
    ) -> ScanMetrics:
        """
        Scan until cancelled (or ``max_cycles`` / ``once``).

        A cycle exception never ends the loop: it is logged, counted in
        ``cycle_errors`` and followed by ``cooldown_ms``. A cycle exceeding
        ``cycle_timeout_ms`` while scanning is cancelled and treated
        the same way; an execution hand-off in flight is never cancelled.

        Returns:
            Final metrics
        """
        cfg = self.config
        metrics = metrics or ScanMetrics()
        cycle_timeout = cfg.cycle_timeout_ms / 1000 if cfg.cycle_timeout_ms else None

        cycle = 0
        while max_cycles is None or cycle < max_cycles:
            cycle += 1
            try:
                result = await self.run_cycle(metrics, cycle_timeout=cycle_timeout)
                metrics = result.metrics
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                logger.error(f"Cycle {cycle} timed out after {cfg.cycle_timeout_ms}ms")
                metrics = metrics.record_cycle_error()
                if self.once:
                    break
                await asyncio.sleep(cfg.cooldown_ms / 1000)
                continue
            except Exception as e:
                logger.error(f"Cycle {cycle} failed: {e}", exc_info=True)
                metrics = metrics.record_cycle_error()
                if self.once:
                    break
                logger.info(f"Cooling down for {format_duration(cfg.cooldown_ms / 1000)}")
                await asyncio.sleep(cfg.cooldown_ms / 1000)
                continue

            if self.once:
                break
            await asyncio.sleep(cfg.check_interval_ms / 1000)

        logger.info(f"Stopped after {cycle} cycles: {metrics.format_log()}")
        return metrics
