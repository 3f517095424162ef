from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .ancestry import DEFAULT_MAX_OPEN_FILES, LocalAncestryOracle, ancestry_path
from .models import AncestryClass, SwitchEvent
from .plotting import plot_ancestry_rates, plot_block_lengths, plot_sample_switches
from .report import (
    SwitchEventWriter,
    SwitchRateSummary,
    block_lengths,
    format_summary_lines,
    render_report,
    summary_to_jsonable,
)
from .sites import SiteReader, load_omit_file
from .toy_data import make_toy_data
from .tracker import compare_streams
from .trio import MODE_PAIRS, MODE_SUCCESSION, TrioFilter, load_trio_pairs
from .utils import ensure_outdir, open_textmaybe_gzip, write_json
from .validation import check_input_paths


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _positive_int(s: str) -> int:
    try:
        v = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not an integer: {s}") from None
    if v <= 0:
        raise argparse.ArgumentTypeError(f"Must be > 0: {s}")
    return v


def _nonneg_int(s: str) -> int:
    try:
        v = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Not an integer: {s}") from None
    if v < 0:
        raise argparse.ArgumentTypeError(f"Must be >= 0: {s}")
    return v


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None and log_path.exists():
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="switcherr",
        description=(
            "SwitchErr: switch error rate of an estimated haplotype phasing against the true phase, "
            "with optional trio-aware and local-ancestry-stratified counting."
        ),
    )
    p.add_argument("--version", action="version", version=f"switcherr {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # quickstart
    # -----------------
    sub.add_parser(
        "quickstart",
        help="Print ready-to-run recipes for common scenarios.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate small estimated/true phgeno files with planted switch errors.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--n-samples", type=_positive_int, default=4, help="Number of samples.")
    t.add_argument("--n-sites", type=_positive_int, default=200, help="Number of loci.")
    t.add_argument("--switch-prob", type=float, default=0.05, help="Per-het-site switch probability.")
    t.add_argument("--missing-prob", type=float, default=0.0, help="Per-site missing estimate probability.")
    t.add_argument("--seed", type=int, default=7, help="Random seed.")
    t.add_argument("--with-ancestry", action="store_true", help="Also write local ancestry files.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # compare
    # -----------------
    c = sub.add_parser(
        "compare",
        help="Count switch errors between an estimated and a true phgeno file.",
    )
    c.add_argument("n_samples", type=_positive_int, help="Number of samples to compare.")
    c.add_argument("est_phgeno", type=_path_exists, help="Estimated phase (phgeno, 0/1/?).")
    c.add_argument("true_phgeno", type=_path_exists, help="True phase (phgeno, 0/1/9).")
    c.add_argument(
        "-s",
        "--skip",
        type=_nonneg_int,
        default=0,
        help="Skip this many samples at the start of every estimated line.",
    )
    trio = c.add_mutually_exclusive_group()
    trio.add_argument(
        "-t",
        "--trio-in-succession",
        action="store_true",
        help="Trio parents are adjacent samples, transmitted haplotype first; omits triple hets.",
    )
    trio.add_argument(
        "-p",
        "--trio-pairs",
        type=_path_exists,
        default=None,
        help="File of parent index pairs; omits triple hets.",
    )
    c.add_argument(
        "-o",
        "--omit",
        type=_path_exists,
        default=None,
        help="File of sample indices (after --skip) to omit from the estimated file.",
    )
    c.add_argument(
        "-l",
        "--local-anc-prefix",
        default=None,
        help="Stratify by local ancestry; files are <prefix>.<sample>.<chrom>.",
    )
    c.add_argument("-c", "--chrom", type=int, default=None, help="Chromosome suffix for local ancestry files.")
    c.add_argument(
        "--max-open-files",
        type=_positive_int,
        default=DEFAULT_MAX_OPEN_FILES,
        help="Maximum local ancestry files held open at once.",
    )
    c.add_argument(
        "--outdir",
        default=None,
        help="Also write summary.json, switches.tsv.gz, plots and report.html here.",
    )
    c.add_argument("--progress", action="store_true", help="Show a progress bar over loci.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="-v: print switch points (sample, switch#, locus, block length) to stderr; -vv: info logs; -vvv: debug logs.",
    )

    return p


# -----------------
# Command handlers
# -----------------

def cmd_quickstart() -> int:
    lines = [
        "SwitchErr quickstart (copy/paste):",
        "",
        "1) Plain switch error rate for 100 samples:",
        "   switcherr compare 100 est.phgeno true.phgeno",
        "",
        "2) Trio parents listed in pairs, transmitted haplotype first:",
        "   switcherr compare -t 100 est.phgeno true.phgeno",
        "   switcherr compare -p parents.txt 100 est.phgeno true.phgeno",
        "",
        "3) Stratified by HAPMIX local ancestry on chromosome 22, with a report:",
        "   switcherr compare -l hapmix/out -c 22 --outdir results/ 100 est.phgeno true.phgeno",
        "   Outputs: results/report.html, results/summary.json, results/switches.tsv.gz",
        "",
        "Tip: switcherr make-toy-data --outdir toy/ writes inputs with a known switch count.",
    ]
    print("\n".join(lines))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    try:
        summary = make_toy_data(
            outdir=outdir,
            n_samples=int(args.n_samples),
            n_sites=int(args.n_sites),
            switch_prob=float(args.switch_prob),
            missing_prob=float(args.missing_prob),
            seed=int(args.seed),
            with_ancestry=bool(args.with_ancestry),
        )
    except Exception as e:
        return _handle_error(e)
    print(json.dumps(summary, indent=2))
    return 0


def _check_compare_args(args: argparse.Namespace) -> None:
    if args.local_anc_prefix is not None and args.chrom is None:
        raise ValueError("Local ancestry (-l) needs the chromosome number (-c)")
    if args.trio_in_succession and args.n_samples % 2:
        raise ValueError(
            f"Trio parents in succession (-t) need an even number of samples, got {args.n_samples}"
        )
    paths = [args.est_phgeno, args.true_phgeno]
    if args.local_anc_prefix is not None:
        paths += [ancestry_path(args.local_anc_prefix, s, args.chrom) for s in range(args.n_samples)]
    check_input_paths(paths)


def _write_outputs(
    outdir: Path,
    *,
    summary: SwitchRateSummary,
    run: Dict[str, Any],
    events: List[SwitchEvent],
) -> Path:
    write_json(outdir / "summary.json", summary_to_jsonable(summary, run=run))

    plots_dir = outdir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    sample_png = plots_dir / "sample_switches.png"
    blocks_png = plots_dir / "block_lengths.png"
    plot_sample_switches(sample_switches=summary.sample_switches.tolist(), out_png=sample_png)
    plot_block_lengths(block_lengths=block_lengths(events), out_png=blocks_png)

    plots_rel = {
        "sample_switches": str(Path("plots") / sample_png.name),
        "block_lengths": str(Path("plots") / blocks_png.name),
    }
    if summary.use_local_ancestry:
        anc_png = plots_dir / "ancestry_rates.png"
        plot_ancestry_rates(
            labels=[k.label for k in AncestryClass],
            rates=summary.class_rates.tolist(),
            out_png=anc_png,
        )
        plots_rel["ancestry_rates"] = str(Path("plots") / anc_png.name)

    return render_report(
        outdir=outdir,
        version=__version__,
        summary=summary,
        run=run,
        plots=plots_rel,
    )


def cmd_compare(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve() if args.outdir else None
    log_path = _log_path(outdir, "compare.log") if outdir is not None else None
    # a single -v only turns on the switch records
    # -v is reserved for the switch records; logging starts one level later
    _setup_logging(max(args.verbose - 1, 0), logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("switcherr")
    logger.info("switcherr %s", __version__)

    try:
        _check_compare_args(args)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Samples: {args.n_samples} (skip {args.skip})")
            if outdir is not None:
                print("Planned outputs:")
                print(f"  report.html -> {outdir / 'report.html'}")
                print(f"  switches.tsv.gz -> {outdir / 'switches.tsv.gz'}")
                print(f"  summary.json -> {outdir / 'summary.json'}")
            return 0

        omit = load_omit_file(args.omit) if args.omit else frozenset()

        trio_filter: Optional[TrioFilter] = None
        trio_mode: Optional[str] = None
        if args.trio_in_succession:
            trio_mode = MODE_SUCCESSION
            trio_filter = TrioFilter(MODE_SUCCESSION, args.n_samples)
        elif args.trio_pairs:
            trio_mode = MODE_PAIRS
            pairing = load_trio_pairs(args.trio_pairs, args.n_samples)
            trio_filter = TrioFilter(MODE_PAIRS, args.n_samples, pairing)

        events: List[SwitchEvent] = []

        with ExitStack() as stack:
            est_fh = stack.enter_context(open_textmaybe_gzip(args.est_phgeno, "rt"))
            true_fh = stack.enter_context(open_textmaybe_gzip(args.true_phgeno, "rt"))
            reader = SiteReader(
                est_fh,
                true_fh,
                args.n_samples,
                skip=args.skip,
                omit=omit,
                est_path=args.est_phgeno,
                true_path=args.true_phgeno,
            )

            oracle: Optional[LocalAncestryOracle] = None
            if args.local_anc_prefix is not None:
                oracle = stack.enter_context(
                    LocalAncestryOracle.from_prefix(
                        args.local_anc_prefix,
                        args.n_samples,
                        args.chrom,
                        max_open_files=args.max_open_files,
                    )
                )

            writer: Optional[SwitchEventWriter] = None
            if outdir is not None:
                ensure_outdir(outdir)
                writer = SwitchEventWriter(outdir / "switches.tsv.gz")
                stack.callback(writer.close)

            def on_switch(ev: SwitchEvent) -> None:
                if args.verbose:
                    sys.stderr.write(ev.diagnostic_line() + "\n")
                if writer is not None:
                    writer.write(ev)
                    events.append(ev)

            result = compare_streams(
                reader,
                trio_filter=trio_filter,
                oracle=oracle,
                on_switch=on_switch,
                progress=bool(args.progress),
            )

        summary = SwitchRateSummary.from_result(result, use_local_ancestry=oracle is not None)
        print("\n".join(format_summary_lines(summary)))

        if outdir is not None:
            run = {
                "est_phgeno": str(args.est_phgeno),
                "true_phgeno": str(args.true_phgeno),
                "skip": int(args.skip),
                "n_omitted": len(omit),
                "trio_mode": trio_mode,
                "local_anc_prefix": args.local_anc_prefix,
                "chrom": args.chrom,
                "switches_tsv_gz": "switches.tsv.gz",
            }
            report_path = _write_outputs(outdir, summary=summary, run=run, events=events)
            logger.info("Report written: %s", report_path)
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "quickstart":
        return cmd_quickstart()
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "compare":
        return cmd_compare(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
