"""
cli.py
~~~~~~

Command line interface.

Usage:
    neuralnet train --example xor --epochs 5000 --output xor.json
    neuralnet resume --checkpoint xor.json --epochs 1000 --output xor2.json
    neuralnet eval --checkpoint xor.json --input 1,0
    neuralnet visualize --checkpoint xor.json --output xor.svg
    neuralnet examples
    neuralnet serve --port 2421
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .activations import get_activation, list_activations
from .checkpoint import load_checkpoint
from .config import DEFAULT_HOST, DEFAULT_PORT, configure_logging
from .errors import NeuralNetError
from .examples import get_example, list_examples
from .network import Network
from .training import TrainingConfig, TrainingController

logger = logging.getLogger(__name__)


def _parse_vector(text: str) -> List[float]:
    try:
        return [float(part) for part in text.split(',') if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected comma-separated numbers, got '{text}'"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='neuralnet',
        description='Train, resume and evaluate feed-forward neural networks.'
    )
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')
    sub = parser.add_subparsers(dest='command', required=True)

    train = sub.add_parser('train', help='train a network on a built-in example')
    train.add_argument('--example', required=True, help='example name, e.g. xor')
    train.add_argument('--epochs', type=int, required=True)
    train.add_argument('--learning-rate', type=float, default=0.5)
    train.add_argument('--activation', default='sigmoid',
                       choices=list_activations())
    train.add_argument('--seed', type=int, default=None,
                       help='seed for reproducible initialisation')
    train.add_argument('--output', help='checkpoint file to write')
    train.add_argument('--checkpoint-interval', type=int, default=None,
                       help='also write the checkpoint every N epochs')
    train.add_argument('--verbose', action='store_true')

    resume = sub.add_parser('resume', help='continue training from a checkpoint')
    resume.add_argument('--checkpoint', required=True)
    resume.add_argument('--epochs', type=int, required=True)
    resume.add_argument('--learning-rate', type=float, default=None,
                        help='override the stored learning rate')
    resume.add_argument('--output', help='checkpoint file to write')
    resume.add_argument('--checkpoint-interval', type=int, default=None)
    resume.add_argument('--verbose', action='store_true')

    evaluate = sub.add_parser('eval', help='evaluate a checkpoint on one input')
    evaluate.add_argument('--checkpoint', required=True)
    evaluate.add_argument('--input', required=True, type=_parse_vector,
                          help='comma-separated input values, e.g. 1,0')

    sub.add_parser('examples', help='list the built-in examples')

    visualize = sub.add_parser('visualize',
                               help='render a checkpoint as SVG or PNG')
    visualize.add_argument('--checkpoint', required=True)
    visualize.add_argument('--output', required=True)
    visualize.add_argument('--width', type=int, default=1200)
    visualize.add_argument('--height', type=int, default=800)
    visualize.add_argument('--show-values', action='store_true')

    serve = sub.add_parser('serve', help='run the REST API server')
    serve.add_argument('--host', default=DEFAULT_HOST)
    serve.add_argument('--port', type=int, default=DEFAULT_PORT)

    return parser


def _print_report(network: Network, inputs, targets) -> None:
    for x, y in zip(inputs, targets):
        output = network.predict(x)
        shown = ', '.join(f"{v:.4f}" for v in output)
        print(f"  {x} -> [{shown}] (expected {y})")


def cmd_train(args: argparse.Namespace) -> int:
    example = get_example(args.example)
    network = Network(
        example.recommended_arch,
        get_activation(args.activation),
        args.learning_rate,
        seed=args.seed
    )
    config = TrainingConfig(
        epochs=args.epochs,
        checkpoint_interval=args.checkpoint_interval,
        checkpoint_path=args.output,
        verbose=args.verbose,
        example_name=example.name,
    )
    print(f"Training '{example.name}' {example.recommended_arch} "
          f"for {args.epochs} epochs (lr={args.learning_rate})")

    controller = TrainingController(network, config)
    history = controller.train(example.inputs, example.targets)
    network = controller.into_network()

    if history:
        print(f"Training complete. Final loss: {history[-1]:.6f}")
    _print_report(network, example.inputs, example.targets)
    if args.output:
        print(f"Checkpoint saved to {args.output}")
    return 0


def cmd_resume(args: argparse.Namespace) -> int:
    checkpoint = load_checkpoint(args.checkpoint)
    meta = checkpoint.metadata
    print(f"Resuming '{meta.example}' from epoch {meta.epoch}/{meta.total_epochs} "
          f"for {args.epochs} more epochs")

    example = get_example(meta.example)
    controller = TrainingController.resume(
        checkpoint,
        args.epochs,
        checkpoint_path=args.output,
        checkpoint_interval=args.checkpoint_interval,
        learning_rate=args.learning_rate,
        verbose=args.verbose,
    )

    history = controller.train(example.inputs, example.targets)
    network = controller.into_network()
    if history:
        print(f"Training complete. Final loss: {history[-1]:.6f}")
    _print_report(network, example.inputs, example.targets)
    if args.output:
        print(f"Checkpoint saved to {args.output}")
    return 0


def cmd_eval(args: argparse.Namespace) -> int:
    checkpoint = load_checkpoint(args.checkpoint)
    output = checkpoint.network.predict(args.input)
    print(', '.join(f"{v:.6f}" for v in output))
    return 0


def cmd_examples(args: argparse.Namespace) -> int:
    for name in list_examples():
        example = get_example(name)
        print(f"{name:<10} {str(example.recommended_arch):<12} "
              f"{example.description}")
    return 0


def cmd_visualize(args: argparse.Namespace) -> int:
    from .visualize import save_visualization

    checkpoint = load_checkpoint(args.checkpoint)
    meta = checkpoint.metadata
    print(f"Example: {meta.example}, epochs {meta.epoch}/{meta.total_epochs}, "
          f"learning rate {meta.learning_rate}")
    print(f"Network architecture: {checkpoint.network.layers}, "
          f"{checkpoint.network.parameter_count()} parameters")
    path = save_visualization(
        checkpoint, args.output, width=args.width, height=args.height,
        show_values=args.show_values
    )
    print(f"Visualization saved to: {path}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from .api_server import run_server

    run_server(host=args.host, port=args.port)
    return 0


COMMANDS = {
    'train': cmd_train,
    'resume': cmd_resume,
    'eval': cmd_eval,
    'examples': cmd_examples,
    'visualize': cmd_visualize,
    'serve': cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        return COMMANDS[args.command](args)
    except (NeuralNetError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
