import argparse
import logging
import time
from typing import Optional, Sequence

from tsp_wisdom.coordinator import RunCoordinator, expert_configs
from tsp_wisdom.crowd import CrowdConfig
from tsp_wisdom.data import load_points
from tsp_wisdom.evolutionary import EvolutionConfig
from tsp_wisdom.snapshots import ProgressSnapshot


logger = logging.getLogger("tsp_wisdom.cli")


def _route(tour: Sequence) -> str:
    return ", ".join(p.name for p in tour)


def _build_config(args) -> EvolutionConfig:
    overrides = {"random_seed": args.seed}
    if args.generations is not None:
        overrides["max_generations"] = args.generations
    if args.stagnation is not None:
        overrides["stopping"] = "stagnation"
        overrides["stagnation_limit"] = args.stagnation
    if args.max_runtime is not None:
        overrides["max_runtime"] = args.max_runtime
    if args.population is not None:
        overrides["population_size"] = args.population
    if args.device is not None:
        overrides["device"] = args.device
    return EvolutionConfig.for_algorithm(args.algorithm, **overrides)


def optimize(args) -> ProgressSnapshot:
    points = load_points(args.path)
    cfg = _build_config(args)
    with RunCoordinator(max_workers=1) as coordinator:
        run = coordinator.start_optimizer(points, cfg)
        next_report = 0.0
        for snapshot in run.channel:
            now = time.perf_counter()
            if now >= next_report:
                logger.info(
                    "gen %d: best=%.2f avg=%.2f worst=%.2f",
                    snapshot.generation,
                    snapshot.best_length,
                    snapshot.average_length,
                    snapshot.worst_length,
                )
                next_report = now + args.report_every
        final = run.result()
    logger.info(
        "finished (%s) at generation %d in %.2fs: length=%.2f",
        final.stop_reason,
        final.generation,
        final.duration,
        final.best_length,
    )
    print(_route(final.best_tour))
    return final


def crowd(args):
    points = load_points(args.path)
    base = _build_config(args)
    configs = expert_configs(base, args.experts, seed=args.seed)
    with RunCoordinator(max_workers=args.workers) as coordinator:
        finals = coordinator.gather_experts(points, configs)
        best_expert = min(f.best_length for f in finals)
        result = coordinator.consult_experts(
            [list(f.best_tour) for f in finals], CrowdConfig(support_ratio=args.support)
        )
    logger.info(
        "consensus length=%.2f (best expert %.2f) after %d joins in %.2fs",
        result.length,
        best_expert,
        len(result.pairs),
        result.duration,
    )
    print(_route(result.tour))
    return result


def main(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(description="TSP genetic search and wisdom-of-crowds consensus")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def common(p):
        p.add_argument("path", help="coordinate file (.tsp or plain 'name x y' lines after a header)")
        p.add_argument("--algorithm", type=int, default=1, choices=[1, 2, 3, 4, 5])
        p.add_argument("--generations", type=int, default=None)
        p.add_argument("--stagnation", type=int, default=None, help="stop after N generations without improvement")
        p.add_argument("--max-runtime", type=float, default=None)
        p.add_argument("--population", type=int, default=None)
        p.add_argument("--device", default=None, help="torch device for batched evaluation, e.g. cpu or cuda:0")
        p.add_argument("--seed", type=int, default=123)
        p.add_argument("--report-every", type=float, default=1.0, help="seconds between progress lines")

    opt_parser = subparsers.add_parser("optimize", help="Run one genetic search")
    common(opt_parser)
    opt_parser.set_defaults(func=optimize)

    crowd_parser = subparsers.add_parser("crowd", help="Gather experts and build a consensus tour")
    common(crowd_parser)
    crowd_parser.add_argument("--experts", type=int, default=10)
    crowd_parser.add_argument("--workers", type=int, default=4)
    crowd_parser.add_argument("--support", type=float, default=0.9)
    crowd_parser.set_defaults(func=crowd)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(asctime)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    return args.func(args)


if __name__ == "__main__":
    main()
