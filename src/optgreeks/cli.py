import argparse
import csv
import io
import json
import logging
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG, DEFAULT_MARKET, DEFAULT_SPOT_RANGE
from .core import Leg, MarketState, METRIC_NAMES
from .portfolio import evaluate_point
from .scenarios import evaluate_curve, evaluate_surface

logger = logging.getLogger(__name__)


def _leg(s: str) -> Leg:
    """TYPE:POSITION:STRIKE[:QTY[:BARRIER:LEVEL]], e.g. ``put:short:95:2``."""
    parts = [p.strip() for p in s.split(":")]
    if len(parts) not in (3, 4, 6):
        raise argparse.ArgumentTypeError(
            "leg must be TYPE:POSITION:STRIKE[:QTY[:BARRIER:LEVEL]]")
    try:
        return Leg(
            option_type=parts[0],
            position=parts[1],
            strike=float(parts[2]),
            quantity=float(parts[3]) if len(parts) > 3 else 1.0,
            barrier_type=parts[4] if len(parts) > 4 else "none",
            barrier_level=float(parts[5]) if len(parts) > 4 else 0.0,
        )
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def load_legs_csv(path) -> list:
    """Read legs from CSV with columns type,position,strike[,quantity,barrier_type,barrier_level]."""
    legs = []
    with open(path, newline="") as fh:
        for row in csv.DictReader(fh):
            legs.append(Leg(
                option_type=row["type"],
                position=row["position"],
                strike=float(row["strike"]),
                quantity=float(row.get("quantity") or 1.0),
                barrier_type=row.get("barrier_type") or "none",
                barrier_level=float(row.get("barrier_level") or 0.0),
            ))
    return legs


def _write_rows(header, rows, output, fmt):
    if fmt == "json":
        text = json.dumps([dict(zip(header, r)) for r in rows], indent=2)
    else:
        buf = io.StringIO()
        w = csv.writer(buf, lineterminator="\n")
        w.writerow(header)
        w.writerows(rows)
        text = buf.getvalue()
    if output is None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
    else:
        Path(output).write_text(text)
        logger.info("wrote %d rows to %s", len(rows), output)


def _format(args) -> str:
    if args.format:
        return args.format
    if args.output and str(args.output).lower().endswith(".json"):
        return "json"
    return "csv"


def add_common(parser: argparse.ArgumentParser):
    parser.add_argument("--leg", dest="legs", type=_leg, action="append", default=[],
                        help="TYPE:POSITION:STRIKE[:QTY[:BARRIER:LEVEL]] (repeatable)")
    parser.add_argument("--legs-file", dest="legs_csv", type=Path, default=None,
                        help="CSV file of legs")
    parser.add_argument("--T", type=float, default=DEFAULT_MARKET.T, help="years")
    parser.add_argument("--sigma", type=float, default=DEFAULT_MARKET.sigma)
    parser.add_argument("--r", type=float, default=DEFAULT_MARKET.r, help="cont. risk-free")
    parser.add_argument("--q", type=float, default=DEFAULT_MARKET.q, help="cont. dividend yield")
    parser.add_argument("--output", "-o", default=None, help="file path (.csv or .json)")
    parser.add_argument("--format", choices=("csv", "json"), default=None)
    parser.add_argument("-v", "--verbose", action="store_true")


def _inputs(args):
    legs = list(args.legs)
    if args.legs_csv is not None:
        legs.extend(load_legs_csv(args.legs_csv))
    market = MarketState(T=args.T, sigma=args.sigma, r=args.r, q=args.q)
    return legs, market


def cmd_point(args):
    legs, market = _inputs(args)
    mv = evaluate_point(legs, market, args.spot)
    _write_rows(("spot",) + METRIC_NAMES, [[args.spot] + list(mv)], args.output, _format(args))


def cmd_curve(args):
    legs, market = _inputs(args)
    curve = evaluate_curve(legs, market, args.min, args.max, args.steps)
    rows = [[s] + list(mv) for s, mv in curve.points()]
    _write_rows(("spot",) + METRIC_NAMES, rows, args.output, _format(args))


def cmd_surface(args):
    legs, market = _inputs(args)
    surf = evaluate_surface(
        legs, market, args.min, args.max, args.n_spot,
        args.variable, args.sec_min, args.sec_max, args.n_sec, args.metric,
        n_workers=args.workers,
    )
    header = (surf.variable.name.lower(),) + tuple(f"{s:.6g}" for s in surf.spots)
    rows = [[v] + row.tolist() for v, row in zip(surf.secondary, surf.values)]
    _write_rows(header, rows, args.output, _format(args))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="optgreeks",
                                description="Option portfolio price and Greeks")
    sub = p.add_subparsers(dest="cmd", required=True)

    # Point
    p_pt = sub.add_parser("point", help="all metrics at one spot")
    add_common(p_pt)
    p_pt.add_argument("--spot", type=float, required=True)
    p_pt.set_defaults(func=cmd_point)

    # Curve
    p_cv = sub.add_parser("curve", help="metrics over a spot range")
    add_common(p_cv)
    p_cv.add_argument("--min", type=float, default=DEFAULT_SPOT_RANGE[0])
    p_cv.add_argument("--max", type=float, default=DEFAULT_SPOT_RANGE[1])
    p_cv.add_argument("--steps", type=int, default=DEFAULT_CONFIG.default_steps)
    p_cv.set_defaults(func=cmd_curve)

    # Surface
    p_sf = sub.add_parser("surface", help="one metric over spot x market variable")
    add_common(p_sf)
    p_sf.add_argument("--min", type=float, default=DEFAULT_SPOT_RANGE[0])
    p_sf.add_argument("--max", type=float, default=DEFAULT_SPOT_RANGE[1])
    p_sf.add_argument("--n-spot", dest="n_spot", type=int,
                      default=DEFAULT_CONFIG.default_surface_steps)
    p_sf.add_argument("--variable", default="volatility",
                      choices=("timeToMaturity", "volatility", "riskFreeRate", "dividendYield"))
    p_sf.add_argument("--sec-min", dest="sec_min", type=float, default=None)
    p_sf.add_argument("--sec-max", dest="sec_max", type=float, default=None)
    p_sf.add_argument("--n-sec", dest="n_sec", type=int,
                      default=DEFAULT_CONFIG.default_surface_steps)
    p_sf.add_argument("--metric", default="price", choices=METRIC_NAMES)
    p_sf.add_argument("--workers", type=int, default=1)
    p_sf.set_defaults(func=cmd_surface)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.legs and args.legs_csv is None:
        p.error("at least one --leg or --legs-file is required")
    args.func(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
