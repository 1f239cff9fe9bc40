#!/usr/bin/env python3
"""
Headless audit simulation.

Runs a machine through many full spins with a seeded RNG, driving it with
fixed host ticks exactly as a frame loop would, and writes one CSV row per
spin plus a printed summary.

Usage:
    python -m scripts.audit_sim --spins 1000 --seed AUDIT_2026 --out out/audit.csv
    python -m scripts.audit_sim --spins 500 --seed AUDIT_2026 --config machine.json --out out/custom.csv
"""
import argparse
import csv
import hashlib
import subprocess
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from reelmachine.config import MachineConfig
from reelmachine.config_hash import get_config_hash
from reelmachine.config_loader import load_machine_config
from reelmachine.logic.machine import Machine, MachineListener
from reelmachine.logic.models import Grid, WinEvent, grid_to_names
from reelmachine.logic.rng import SeededRNG


DEFAULT_TICK = 1.0 / 60.0

# Ticks allowed per spin before the run is declared stuck
MAX_TICKS_PER_SPIN = 100_000


@dataclass
class SpinRecord:
    """One completed spin."""
    index: int
    spin_time: float
    grid: list[list[str]]
    wins: list[WinEvent]
    credits_won: int
    total_credits: int


@dataclass
class SimulationStats:
    """Statistics accumulated during simulation."""
    spins: int = 0
    winning_spins: int = 0
    total_credits: int = 0
    max_spin_credits: int = 0
    elapsed: float = 0.0
    pattern_counts: Counter = field(default_factory=Counter)
    symbol_counts: Counter = field(default_factory=Counter)
    records: list[SpinRecord] = field(default_factory=list)

    @property
    def hit_frequency(self) -> float:
        """Percentage of spins with at least one real win."""
        return (self.winning_spins / self.spins * 100) if self.spins > 0 else 0.0

    @property
    def credits_per_spin(self) -> float:
        return self.total_credits / self.spins if self.spins > 0 else 0.0


class _SpinCollector(MachineListener):
    """Collects the grid and real wins of the spin in flight."""

    def __init__(self) -> None:
        self.grid: Grid | None = None
        self.wins: list[WinEvent] = []

    def on_grid(self, grid: Grid) -> None:
        self.grid = grid
        self.wins = []

    def on_win(self, win: WinEvent) -> None:
        self.wins.append(win)


def get_git_commit() -> str:
    """Get current git commit hash (short)."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=Path(__file__).parent.parent.parent,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return "unknown"


def get_timestamp_iso() -> str:
    """Get ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def seed_to_int(seed_str: str) -> int:
    """Convert string seed to integer deterministically."""
    return int(hashlib.sha256(seed_str.encode()).hexdigest(), 16) % (2**31)


def run_simulation(
    spins: int,
    seed_str: str,
    config: MachineConfig | None = None,
    tick: float = DEFAULT_TICK,
    verbose: bool = False,
) -> SimulationStats:
    """
    Run ``spins`` complete spins and collect per-spin records.

    Raises:
        RuntimeError: If a spin does not complete within MAX_TICKS_PER_SPIN.
    """
    if tick <= 0:
        raise ValueError(f"tick must be positive, got {tick}")

    collector = _SpinCollector()
    machine = Machine(
        config=config or MachineConfig(),
        rng=SeededRNG(seed_to_int(seed_str)),
        listener=collector,
    )
    stats = SimulationStats()

    for index in range(1, spins + 1):
        spin_time = machine.spin()

        ticks = 0
        while not machine.ready:
            machine.advance(tick)
            ticks += 1
            if ticks > MAX_TICKS_PER_SPIN:
                raise RuntimeError(f"Spin {index} did not complete after {ticks} ticks")
        stats.elapsed += ticks * tick

        record = SpinRecord(
            index=index,
            spin_time=spin_time,
            grid=grid_to_names(collector.grid),
            wins=list(collector.wins),
            credits_won=machine.last_spin_credits,
            total_credits=machine.total_credits,
        )
        stats.records.append(record)
        stats.spins += 1
        stats.total_credits = machine.total_credits
        stats.max_spin_credits = max(stats.max_spin_credits, record.credits_won)
        if record.wins:
            stats.winning_spins += 1
        for win in record.wins:
            stats.pattern_counts[win.pattern.value] += 1
            stats.symbol_counts[win.symbol.name.lower()] += 1

        if verbose and index % max(1, spins // 20) == 0:
            print(f"\rProgress: {index / spins * 100:.1f}%", end="", flush=True)

    if verbose:
        print("\rProgress: 100.0%")

    return stats


def generate_csv(
    seed_str: str,
    stats: SimulationStats,
    config_hash: str,
    output_path: str,
) -> None:
    """Write one row per spin; provenance columns come first."""
    timestamp = get_timestamp_iso()
    git_commit = get_git_commit()

    fieldnames = [
        "timestamp",
        "git_commit",
        "config_hash",
        "seed",
        "spins",
        "spin",
        "spin_time",
        "grid",
        "patterns",
        "credits_won",
        "total_credits",
    ]

    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    with open(output_file, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for record in stats.records:
            writer.writerow({
                "timestamp": timestamp,
                "git_commit": git_commit,
                "config_hash": config_hash,
                "seed": seed_str,
                "spins": stats.spins,
                "spin": record.index,
                "spin_time": f"{record.spin_time:.6f}",
                "grid": "|".join(",".join(window) for window in record.grid),
                "patterns": ";".join(
                    f"{win.pattern.value}:{win.symbol.name.lower()}x{win.match_count}={win.amount}"
                    for win in record.wins
                ),
                "credits_won": record.credits_won,
                "total_credits": record.total_credits,
            })

    print(f"CSV written to: {output_path}")


def check_cached_result(output_path: str, config_hash: str, spins: int, seed: str) -> bool:
    """
    Check if a valid cached result exists.

    Returns True if the CSV was produced for the same config_hash, spins and seed.
    """
    path = Path(output_path)
    if not path.exists():
        return False

    try:
        with open(path, "r") as f:
            reader = csv.DictReader(f)
            row = next(reader, None)
            if row is None:
                return False
            if row.get("config_hash") != config_hash:
                return False
            if int(row.get("spins", 0)) != spins:
                return False
            if row.get("seed") != seed:
                return False
            return True
    except (OSError, csv.Error, ValueError):
        return False


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Headless slot machine audit simulation")
    parser.add_argument(
        "--spins",
        type=int,
        required=True,
        help="Number of spins to simulate",
    )
    parser.add_argument(
        "--seed",
        type=str,
        required=True,
        help="Seed string for reproducibility",
    )
    parser.add_argument(
        "--out",
        type=str,
        required=True,
        help="Output CSV path",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Machine config JSON (built-in defaults when omitted)",
    )
    parser.add_argument(
        "--tick",
        type=float,
        default=DEFAULT_TICK,
        help="Host tick length in seconds",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show progress",
    )
    parser.add_argument(
        "--skip-if-cached",
        action="store_true",
        help="Skip simulation if valid cached result exists",
    )

    args = parser.parse_args()

    config = load_machine_config(args.config) if args.config else MachineConfig()
    config_hash = get_config_hash(config)
    print(f"Running simulation: spins={args.spins}, seed={args.seed}, tick={args.tick:.6f}")
    print(f"Config hash: {config_hash}")

    if args.skip_if_cached:
        if check_cached_result(args.out, config_hash, args.spins, args.seed):
            print(f"Using cached result: {args.out}")
            return 0

    stats = run_simulation(
        spins=args.spins,
        seed_str=args.seed,
        config=config,
        tick=args.tick,
        verbose=args.verbose,
    )

    generate_csv(
        seed_str=args.seed,
        stats=stats,
        config_hash=config_hash,
        output_path=args.out,
    )

    print("\nSummary:")
    print(f"  Spins: {stats.spins}")
    print(f"  Simulated time: {stats.elapsed:.1f}s")
    print(f"  Total credits: {stats.total_credits}")
    print(f"  Credits per spin: {stats.credits_per_spin:.4f}")
    print(f"  Hit frequency: {stats.hit_frequency:.4f}%")
    print(f"  Max spin credits: {stats.max_spin_credits}")
    for pattern, count in sorted(stats.pattern_counts.items()):
        print(f"  Pattern {pattern}: {count}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
