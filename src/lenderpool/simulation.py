"""
Scenario Simulator

Replays a YAML scenario (deposits, withdrawals, registrations, claims,
rate changes and authority switches at given days) against a pool wired
with in-memory collaborators, and reports every user's principal and
rewards per authority.

Example scenario::

    name: two-authorities
    assets:
      - {symbol: USDT, decimals: 6}
    authorities:
      - id: rm-1
        rates: [{asset: USDT, rate_bps: 1000}]
      - id: rm-2
        rates: [{asset: USDT, rate_bps: 500}]
    steps:
      - {at_days: 0, action: register, user: alice}
      - {at_days: 0, action: deposit, user: alice, amount: "1000"}
      - {at_days: 365, action: switch, authority: rm-2}
    report_at_days: 730
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from lenderpool.access.capability import Capability, CapabilityIssuer
from lenderpool.collaborators.assets import CustodyAccount, InMemoryToken
from lenderpool.collaborators.strategy import TokenYieldStrategy
from lenderpool.collaborators.verification import VerificationGate
from lenderpool.config import PoolConfig
from lenderpool.constants import MAX_REWARD_ASSETS, SECONDS_PER_DAY
from lenderpool.exceptions import ConfigError
from lenderpool.pool.ledger import PoolLedger
from lenderpool.reward.rate_ledger import RateLedger

logger = logging.getLogger(__name__)

RESERVE_ACCOUNT = "reward-reserve"
STRATEGY_ACCOUNT = "yield-strategy"
SIMULATOR = "simulator"

Action = Literal["deposit", "withdraw", "register", "claim", "claim_all", "switch", "set_rate"]

_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "deposit": ("user", "amount"),
    "withdraw": ("user", "amount"),
    "register": ("user",),
    "claim": ("user",),
    "claim_all": ("user",),
    "switch": ("authority",),
    "set_rate": ("authority", "asset", "rate_bps"),
}


class AssetSpec(BaseModel):
    symbol: str
    decimals: int = Field(default=6, ge=0, le=36)


class RateSpec(BaseModel):
    asset: str
    rate_bps: int = Field(..., ge=0)


class AuthoritySpec(BaseModel):
    id: str
    rates: list[RateSpec] = Field(..., min_length=1, max_length=MAX_REWARD_ASSETS)


class Step(BaseModel):
    """One scenario action at ``at_days`` after the start."""

    at_days: float = Field(..., ge=0)
    action: Action
    user: Optional[str] = None
    amount: Optional[str] = Field(None, description="Whole tokens, e.g. '1000.5'")
    authority: Optional[str] = None
    asset: Optional[str] = None
    rate_bps: Optional[int] = Field(None, ge=0)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return None if v is None else str(v)

    @model_validator(mode="after")
    def check_required(self) -> "Step":
        missing = [name for name in _REQUIRED_FIELDS[self.action] if getattr(self, name) is None]
        if missing:
            raise ConfigError(f"Step '{self.action}' at day {self.at_days} needs {', '.join(missing)}")
        return self

    @property
    def at(self) -> int:
        return int(self.at_days * SECONDS_PER_DAY)


class Scenario(BaseModel):
    """A replayable pool history.

    The first authority becomes active at day 0; the others only through
    ``switch`` steps.
    """

    name: str = "scenario"
    pool: PoolConfig = Field(default_factory=PoolConfig)
    assets: list[AssetSpec] = Field(..., min_length=1)
    authorities: list[AuthoritySpec] = Field(..., min_length=1)
    steps: list[Step] = Field(default_factory=list)
    reserve: str = Field(default="1000000000", description="Whole tokens minted per reward reserve")
    verification_threshold: Optional[str] = None
    verified: list[str] = Field(default_factory=list)
    use_strategy: bool = False
    report_at_days: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_consistency(self) -> "Scenario":
        symbols = [a.symbol for a in self.assets]
        if self.pool.principal_asset not in symbols:
            raise ConfigError(f"Principal asset {self.pool.principal_asset} is not declared")
        ids = [a.id for a in self.authorities]
        if len(set(ids)) != len(ids):
            raise ConfigError(f"Duplicate authority ids: {ids}")
        for authority in self.authorities:
            for rate in authority.rates:
                if rate.asset not in symbols:
                    raise ConfigError(f"Authority {authority.id} pays undeclared asset {rate.asset}")
        last = 0.0
        for step in self.steps:
            if step.at_days < last:
                raise ConfigError(f"Steps must be in time order: day {step.at_days} after day {last}")
            last = step.at_days
        if self.report_at_days is not None and self.report_at_days < last:
            raise ConfigError(f"report_at_days {self.report_at_days} precedes the last step")
        return self

    @property
    def report_at(self) -> int:
        if self.report_at_days is not None:
            return int(self.report_at_days * SECONDS_PER_DAY)
        return self.steps[-1].at if self.steps else 0


class UserReport(BaseModel):
    principal: int = 0
    claimed: dict[str, int] = Field(default_factory=dict)
    pending: dict[str, dict[str, int]] = Field(
        default_factory=dict, description="Unclaimed reward by authority id, then asset"
    )


class ScenarioResult(BaseModel):
    name: str
    report_at: int
    authorities: list[str] = Field(default_factory=list, description="Chain, oldest first")
    active_authority: Optional[str] = None
    decimals: dict[str, int] = Field(default_factory=dict)
    users: dict[str, UserReport] = Field(default_factory=dict)


def load_scenario(path: Path) -> Scenario:
    """Load a scenario from a YAML file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.exists():
        raise ConfigError(f"Scenario not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return Scenario(**data)
    except ConfigError:
        raise
    except Exception as exc:
        raise ConfigError(f"Failed to load scenario: {exc}") from exc


class _Simulation:
    """A pool wired with in-memory collaborators for one scenario run."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario
        config = scenario.pool
        self.tokens = {a.symbol: InMemoryToken(a.symbol, a.decimals) for a in scenario.assets}
        self.principal_token = self.tokens[config.principal_asset]
        self.specs = {a.id: a for a in scenario.authorities}
        self.switched: set[str] = set()

        reward_assets = {r.asset for a in scenario.authorities for r in a.rates}
        reserves = {}
        for symbol in sorted(reward_assets):
            token = self.tokens[symbol]
            token.mint(RESERVE_ACCOUNT, token.units(scenario.reserve))
            reserves[symbol] = CustodyAccount(token, RESERVE_ACCOUNT)

        gate = None
        if scenario.verification_threshold is not None:
            gate = VerificationGate(self.principal_token.units(scenario.verification_threshold))
            for user in scenario.verified:
                gate.verify(user)

        strategy = None
        if scenario.use_strategy:
            strategy = TokenYieldStrategy(
                self.principal_token, config.custody_account, STRATEGY_ACCOUNT
            )

        issuer = CapabilityIssuer()
        self.operator = issuer.issue(SIMULATOR, Capability.OPERATOR)
        self.rate_setter = issuer.issue(SIMULATOR, Capability.RATE_SETTER)
        self.pool = PoolLedger(
            CustodyAccount(self.principal_token, config.custody_account),
            issuer,
            reward_reserves=reserves,
            eligibility=gate,
            strategy=strategy,
            config=config,
        )
        self.users: dict[str, UserReport] = {}

    def switch(self, authority_id: str, now: int) -> None:
        spec = self.specs.get(authority_id)
        if spec is None:
            raise ConfigError(f"Unknown authority {authority_id}")
        if authority_id in self.switched:
            raise ConfigError(f"Authority {authority_id} was already switched in")
        ledgers = [
            RateLedger(
                rate.asset,
                rate.rate_bps,
                start_time=now,
                principal_decimals=self.principal_token.decimals,
                reward_decimals=self.tokens[rate.asset].decimals,
            )
            for rate in spec.rates
        ]
        self.pool.switch_authority(self.operator, self.pool.new_authority(authority_id, ledgers), now)
        self.switched.add(authority_id)

    def apply(self, step: Step) -> None:
        now = step.at
        if step.user is not None:
            self.users.setdefault(step.user, UserReport())
        logger.debug("Day %s: %s %s", step.at_days, step.action, step.user or step.authority)

        if step.action == "deposit":
            amount = self.principal_token.units(step.amount)
            self.principal_token.mint(step.user, amount)
            self.principal_token.approve(step.user, self.scenario.pool.custody_account, amount)
            self.pool.deposit(step.user, amount, now)
        elif step.action == "withdraw":
            self.pool.withdraw_principal(step.user, self.principal_token.units(step.amount), now)
        elif step.action == "register":
            self.pool.register(step.user, now, step.authority)
        elif step.action == "claim":
            assets = [step.asset] if step.asset else None
            self._record_claim(step.user, self.pool.claim(step.user, now, step.authority, assets))
        elif step.action == "claim_all":
            for paid in self.pool.claim_all(step.user, now, step.asset).values():
                self._record_claim(step.user, paid)
        elif step.action == "switch":
            self.switch(step.authority, now)
        elif step.action == "set_rate":
            self.pool.set_rate(self.rate_setter, step.authority, step.asset, step.rate_bps, now)

    def _record_claim(self, user: str, paid: dict[str, int]) -> None:
        claimed = self.users[user].claimed
        for asset, amount in paid.items():
            claimed[asset] = claimed.get(asset, 0) + amount

    def report(self) -> ScenarioResult:
        now = self.scenario.report_at
        chain = self.pool.authorities()
        for user, report in self.users.items():
            report.principal = self.pool.principal_of(user)
            report.pending = {
                authority.authority_id: authority.reward_of(user, now)
                for authority in reversed(chain)
                if authority.is_registered(user)
            }
        active = self.pool.active_authority
        return ScenarioResult(
            name=self.scenario.name,
            report_at=now,
            authorities=[a.authority_id for a in reversed(chain)],
            active_authority=active.authority_id if active else None,
            decimals={symbol: token.decimals for symbol, token in self.tokens.items()},
            users=self.users,
        )


def run_scenario(scenario: Scenario) -> ScenarioResult:
    """Replay ``scenario`` and report principal and rewards per user.

    Raises:
        LenderPoolError: The first error raised by a step, unchanged.
    """
    sim = _Simulation(scenario)
    sim.switch(scenario.authorities[0].id, 0)
    for step in scenario.steps:
        sim.apply(step)
    logger.info("Scenario %s replayed %d steps", scenario.name, len(scenario.steps))
    return sim.report()


__all__ = [
    "AssetSpec",
    "AuthoritySpec",
    "RateSpec",
    "Scenario",
    "ScenarioResult",
    "Step",
    "UserReport",
    "load_scenario",
    "run_scenario",
]
