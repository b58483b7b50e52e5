import argparse
import sys

from rich.console import Console
from rich.table import Table

from mlwrap import __version__
from mlwrap.config import settings
from mlwrap.core.chain import get_tune_result, iter_chain
from mlwrap.core.errors import MlwrapError
from mlwrap.core.measures import mmce
from mlwrap.demo import build_tuned_bagged_tree, run_demo
from mlwrap.utils import configure_logging, logger

console = Console()


def _run_demo(args: argparse.Namespace) -> int:
    """
    Trains the tuned bagged tree on the weighted iris task and prints the
    tuning result, the optimization path and the confusion table.
    """
    logger.debug(f"Comando 'demo' selecionado: {vars(args)}")
    result = run_demo(
        seed=args.seed,
        iters=args.iters,
        feats=args.feats,
        maxit=args.maxit,
        folds=args.folds,
        executor=args.executor,
        n_jobs=args.n_jobs,
    )
    tune = get_tune_result(result.model)
    console.print(f"[bold]{result.learner.id}[/bold] em {result.task!r}")
    console.print(repr(tune))

    path = Table(title="Caminho de otimização")
    frame = tune.opt_path.as_frame()
    for col in frame.columns:
        path.add_column(col)
    for row in frame.iter_rows():
        path.add_row(*(f"{v:.4g}" if isinstance(v, float) else str(v) for v in row))
    console.print(path)

    confusion = Table(title="Predição no treino (truth × response)")
    confusion.add_column("truth")
    confusion.add_column("response")
    confusion.add_column("n", justify="right")
    for truth, response, n in result.prediction.confusion().iter_rows():
        confusion.add_row(str(truth), str(response), str(n))
    console.print(confusion)
    console.print(f"mmce no treino: {mmce(result.prediction):.4f}")
    return 0


def _show_params(args: argparse.Namespace) -> int:
    """Prints every parameter of the demo chain and the layer that declares it."""
    learner = build_tuned_bagged_tree(iters=args.iters, feats=args.feats)
    layers = list(iter_chain(learner))
    table = Table(title=f"ParamSet efetivo de {learner.id}")
    table.add_column("parâmetro")
    table.add_column("domínio")
    table.add_column("default")
    table.add_column("camada")
    params = learner.get_param_set()
    for name, depth in learner.routes.items():
        param = params[name]
        default = f"{param.default:.3g}" if isinstance(param.default, float) else str(param.default)
        table.add_row(name, param.describe(), default, layers[depth].id)
    console.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the mlwrap CLI.
    Subcommands:
        demo:    Tunes a bagged classification tree on weighted iris.
            - --iters / --feats: bagging iterations and feature fraction.
            - --maxit / --folds: random search budget and CV folds.
            - --seed, --executor, --n-jobs.
        params:  Lists the effective ParamSet of the demo chain.
    """
    parser = argparse.ArgumentParser(
        prog="mlwrap",
        description=f"mlwrap - Composable learner wrappers v{__version__}",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"mlwrap v{__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Loga em nível DEBUG no console."
    )
    parser.add_argument(
        "--log-file", action="store_true", help=f"Grava logs diários em {settings.LOGS_DIR}."
    )

    subparsers = parser.add_subparsers(dest="command", help="Comandos principais")
    subparsers.required = True

    # --- Comando: demo ---
    parser_demo = subparsers.add_parser("demo", help="Executa o fluxo tree → bagging → tuning.")
    parser_demo.add_argument("--iters", type=int, default=100, help="Iterações de bagging.")
    parser_demo.add_argument("--feats", type=float, default=0.5, help="Fração de features por bag.")
    parser_demo.add_argument("--maxit", type=int, default=5, help="Trials da busca aleatória.")
    parser_demo.add_argument(
        "--folds", type=int, default=settings.CV_FOLDS, help="Folds da validação cruzada."
    )
    parser_demo.add_argument("--seed", type=int, default=settings.DEFAULT_SEED, help="Semente.")
    parser_demo.add_argument(
        "--executor",
        choices=["sequential", "thread", "process", "joblib"],
        default=None,
        help=f"Executor dos trials. Padrão: {settings.EXECUTOR}",
    )
    parser_demo.add_argument("-j", "--n-jobs", type=int, default=None, help="Número de workers.")
    parser_demo.set_defaults(func=_run_demo)

    # --- Comando: params ---
    parser_params = subparsers.add_parser("params", help="Lista o ParamSet efetivo da cadeia demo.")
    parser_params.add_argument("--iters", type=int, default=100)
    parser_params.add_argument("--feats", type=float, default=0.5)
    parser_params.set_defaults(func=_show_params)

    args = parser.parse_args(argv)
    if args.verbose or args.log_file:
        configure_logging(level="DEBUG" if args.verbose else None, to_file=args.log_file or None)
    try:
        return args.func(args)
    except MlwrapError as exc:
        logger.error(f"❌ {type(exc).__name__}: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
