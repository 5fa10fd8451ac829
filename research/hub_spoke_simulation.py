import argparse
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from hub_model.src.constants import WAD, REPAY_ALL, PERCENTAGE_FACTOR
from hub_model.src.errors import ProtocolError
from hub_model.src.instructions.interest_index import RandomIndex
from hub_model.src.instructions.risk_premium import RandomRiskPremium
from hub_model.src.invariants import check_hub
from hub_model.src.state.clock import Clock
from hub_model.src.state.liquidity_hub import LiquidityHub
from hub_model.src.state.protocol_config import ProtocolConfig
from hub_model.src.state.spoke import Spoke
from hub_model.src.state.user import User

ACTIONS = ("supply", "withdraw", "borrow", "repay", "update_risk_premium")


@dataclass
class SimulationParams:
    steps: int = 500
    spokes: int = 3
    users_per_spoke: int = 4
    max_supply: int = 10_000 * WAD
    max_index_rate_bps: int = 10  # per tick
    max_risk_premium_bps: int = PERCENTAGE_FACTOR
    repay_all_probability: float = 0.2
    random_seed: Optional[int] = None
    experiment_name: str = "default"
    plot: bool = True
    action_weights: Dict[str, float] = field(default_factory=lambda: {
        "supply": 0.3,
        "withdraw": 0.15,
        "borrow": 0.25,
        "repay": 0.2,
        "update_risk_premium": 0.1,
    })


class HubSpokeSimulation:
    """Drives a hub with random user actions, one action per tick"""

    def __init__(self, params: SimulationParams):
        self.params = params
        # one independent stream per random source
        action_seed, index_seed, premium_seed = np.random.SeedSequence(params.random_seed).spawn(3)
        self.rng = np.random.default_rng(action_seed)
        self.clock = Clock()
        self.hub = LiquidityHub(
            config=ProtocolConfig(max_risk_premium=params.max_risk_premium_bps),
            clock=self.clock,
            index_source=RandomIndex(params.max_index_rate_bps, seed=index_seed),
            risk_premium_sampler=RandomRiskPremium(params.max_risk_premium_bps, seed=premium_seed),
        )
        self.spokes: List[Spoke] = [Spoke(self.hub) for _ in range(params.spokes)]
        self.users: List[User] = [
            User(spoke=spoke) for spoke in self.spokes for _ in range(params.users_per_spoke)
        ]
        self.records: List[dict] = []

        weights = np.array([params.action_weights.get(a, 0.0) for a in ACTIONS], dtype=float)
        self.action_probabilities = weights / weights.sum()

    def fraction(self) -> float:
        return float(self.rng.uniform(0.05, 1.0))

    def scaled(self, amount: int) -> int:
        # stay in integer space, a float product would lose precision above 2**53
        return amount * int(self.fraction() * 10_000) // 10_000

    def step(self, action: str, user: User) -> Optional[int]:
        hub = self.hub
        if action == "supply":
            amount = self.scaled(self.params.max_supply)
            return user.supply(amount)
        if action == "withdraw":
            amount = self.scaled(min(user.get_supplied_balance(), hub.available_liquidity))
            return user.withdraw(amount) if amount > 0 else None
        if action == "borrow":
            amount = self.scaled(hub.available_liquidity // 2)
            return user.borrow(amount) if amount > 0 else None
        if action == "repay":
            total_debt = user.get_total_debt()
            if total_debt <= 0:
                return None
            if self.rng.random() < self.params.repay_all_probability:
                return user.repay(REPAY_ALL)
            return user.repay(self.scaled(total_debt))
        user.update_risk_premium()
        return None

    def record(self, step: int, action: str, user: User) -> None:
        snapshot = self.hub.snapshot()
        snapshot.update(step=step, action=action, user=user.id, tick=self.clock.now())
        self.records.append(snapshot)

    def simulate(self) -> pd.DataFrame:
        for step in range(self.params.steps):
            action = str(self.rng.choice(ACTIONS, p=self.action_probabilities))
            user = self.users[int(self.rng.integers(len(self.users)))]

            self.step(action, user)
            check_hub(self.hub)
            self.record(step, action, user)

            self.clock.skip()

        return self.results()

    def results(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(self.records)

    def plot_results(self, frame: pd.DataFrame) -> Path:
        output_dir = Path('research/results') / self.params.experiment_name
        output_dir.mkdir(parents=True, exist_ok=True)

        # in whole units, raw values can exceed int64
        units = frame[["base_debt", "premium_debt", "available_liquidity", "total_supply_assets"]].astype(float) / WAD

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8))

        ax1.plot(frame["step"], units["base_debt"], label='Base Debt')
        ax1.plot(frame["step"], units["premium_debt"], label='Premium Debt', color='orange')
        ax1.set_ylabel('Debt')
        ax1.set_title('Hub Debt Over Time')
        ax1.legend()
        ax1.grid(True)

        ax2.plot(frame["step"], units["available_liquidity"], label='Available Liquidity')
        ax2.plot(frame["step"], units["total_supply_assets"], label='Total Supply Assets', color='green')
        ax2.set_ylabel('Assets')
        ax2.set_xlabel('Step')
        ax2.set_title('Hub Liquidity Over Time')
        ax2.legend()
        ax2.grid(True)

        plt.tight_layout()

        name = f"steps_{self.params.steps}_spokes_{self.params.spokes}"
        if self.params.random_seed is not None:
            name += f"_seed_{self.params.random_seed}"
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        plot_path = output_dir / f"{name}_{timestamp}.png"
        plt.savefig(plot_path)
        plt.close()

        frame.to_csv(output_dir / f"{name}_{timestamp}.csv", index=False)
        return plot_path


def parse_args(argv=None) -> SimulationParams:
    parser = argparse.ArgumentParser(description="Random stress run of the hub/spoke accounting model")
    parser.add_argument("--steps", type=int, default=500)
    parser.add_argument("--spokes", type=int, default=3)
    parser.add_argument("--users-per-spoke", type=int, default=4)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-index-rate-bps", type=int, default=10)
    parser.add_argument("--max-risk-premium-bps", type=int, default=PERCENTAGE_FACTOR)
    parser.add_argument("--experiment", default="default")
    parser.add_argument("--no-plot", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    params = SimulationParams(
        steps=args.steps,
        spokes=args.spokes,
        users_per_spoke=args.users_per_spoke,
        random_seed=args.seed,
        max_index_rate_bps=args.max_index_rate_bps,
        max_risk_premium_bps=args.max_risk_premium_bps,
        experiment_name=args.experiment,
        plot=not args.no_plot,
    )
    return params


def main(argv=None) -> int:
    params = parse_args(argv)
    sim = HubSpokeSimulation(params)

    try:
        frame = sim.simulate()
    except ProtocolError as e:
        print(f"Step {len(sim.records)} failed: {type(e).__name__}: {e}")
        for name, value in getattr(e, "snapshot", {}).items():
            print(f"  {name:<28} {value}")
        frame = sim.results()
        status = 1
    else:
        status = 0

    print(f"Completed {len(frame)} of {params.steps} steps")
    if not frame.empty:
        print(frame[["base_debt", "premium_debt", "available_liquidity"]].astype(float).describe())
        if params.plot:
            print(f"Saved plot to {sim.plot_results(frame)}")
    return status


if __name__ == "__main__":
    sys.exit(main())
