import argparse
from .experiment_manager import (
    run_experiment_from_config,
    list_experiments,
    plot_experiment,
    compare_experiments,
)


def main():
    parser = argparse.ArgumentParser(description="wealth-sim experiment manager")
    sub = parser.add_subparsers(dest="cmd")

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------
    p_run = sub.add_parser("run", help="Run an experiment from a YAML config")
    p_run.add_argument("config", type=str, help="Path to .yaml config file")
    p_run.add_argument("--root", type=str, default="results", help="Output root directory")

    # ------------------------------------------------------------------
    # list
    # ------------------------------------------------------------------
    p_list = sub.add_parser("list", help="List previous experiment runs")
    p_list.add_argument("--root", type=str, default="results")

    # ------------------------------------------------------------------
    # plot
    # ------------------------------------------------------------------
    p_plot = sub.add_parser("plot", help="Plot all charts for a run")
    p_plot.add_argument("run_dir", type=str, help="Path to run output directory")

    # ------------------------------------------------------------------
    # compare
    # ------------------------------------------------------------------
    p_cmp = sub.add_parser("compare", help="Compare final asset distributions across runs")
    p_cmp.add_argument(
        "runs", nargs="+", help="Run IDs (directory names under results/)"
    )
    p_cmp.add_argument("--root", type=str, default="results")

    args = parser.parse_args()

    if args.cmd == "run":
        run_experiment_from_config(args.config, root=args.root)

    elif args.cmd == "list":
        list_experiments(args.root)

    elif args.cmd == "plot":
        plot_experiment(args.run_dir)

    elif args.cmd == "compare":
        compare_experiments(args.runs, root=args.root)

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
