import argparse
import logging

from . import config, playground
from .verify import check_playground


def build_parser():
    ap = argparse.ArgumentParser(
        prog="gradplay",
        description="Build small tensors, backpropagate through them and print what torch.autograd recorded.",
    )
    ap.add_argument("--device", default="auto", help="torch device (auto, cpu, cuda, mps, ...)")
    ap.add_argument("--dtype", default="float32", help="floating dtype of the demo tensors")
    ap.add_argument("--seed", type=int, default=None, help="seed for the random tensor step")
    ap.add_argument("--graph", action="store_true", help="print the recorded backward graphs")
    ap.add_argument("--check", action="store_true", help="verify the gradients against closed forms")
    ap.add_argument("--log-file", default=config.DEFAULT_LOG_FILE, help="log file, '-' for stderr")
    ap.add_argument("--log-level", default="DEBUG", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def main(argv=None):
    ap = build_parser()
    args = ap.parse_args(argv)

    try:
        dtype = config.resolve_dtype(args.dtype)
    except ValueError as e:
        ap.error(str(e))

    log_file = None if args.log_file == "-" else args.log_file
    config.setup_logging(log_file, getattr(logging, args.log_level))

    results = playground.run(
        device=args.device,
        dtype=dtype,
        seed=args.seed,
        show_graph=args.graph,
    )

    if args.check:
        checker = check_playground(results)
        passed, failed = checker.summary()
        print(f"gradient checks: {passed} passed, {failed} failed")
        for name, message in checker.failures:
            print(f"  {name}: {message}")
        if not checker.ok:
            return 1
    return 0
