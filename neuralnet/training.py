"""
training.py
~~~~~~~~~~~

Multi-epoch training driver with progress callbacks and checkpointing.

The controller owns its network for the duration of a run::

    controller = TrainingController(network, TrainingConfig(epochs=1000))
    controller.add_callback(lambda epoch, loss, net: print(epoch, loss))
    controller.train(inputs, targets)
    network = controller.into_network()
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .activations import SIGMOID, Activation
from .checkpoint import DEFAULT_EXAMPLE_NAME, Checkpoint, load_checkpoint
from .errors import DimensionMismatchError, NetworkStateError
from .examples import get_example
from .matrix import Matrix
from .network import Network, should_report

logger = logging.getLogger(__name__)

# (epoch, loss, network)
ProgressCallback = Callable[[int, float, Network], None]


class TrainingState(str, Enum):
    IDLE = 'idle'
    TRAINING = 'training'
    COMPLETED = 'completed'


@dataclass(frozen=True)
class TrainingConfig:
    """
    Settings for one training run.

    Args:
        epochs: Number of passes over the dataset
        checkpoint_interval: Write a checkpoint every N epochs (needs
            ``checkpoint_path``)
        checkpoint_path: Where checkpoints are written; the final network is
            also written here when training completes
        verbose: Log epoch progress and loss
        example_name: Recorded in checkpoint metadata
        propagate_callback_errors: Abort training when a callback raises
            instead of logging and carrying on
    """

    epochs: int
    checkpoint_interval: Optional[int] = None
    checkpoint_path: Optional[str] = None
    verbose: bool = False
    example_name: Optional[str] = None
    propagate_callback_errors: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.epochs, bool) or not isinstance(self.epochs, int) \
                or self.epochs < 0:
            raise ValueError(
                f"epochs must be a non-negative integer, got {self.epochs!r}"
            )
        if self.checkpoint_interval is not None and (
            isinstance(self.checkpoint_interval, bool)
            or not isinstance(self.checkpoint_interval, int)
            or self.checkpoint_interval < 1
        ):
            raise ValueError(
                "checkpoint_interval must be a positive integer, "
                f"got {self.checkpoint_interval!r}"
            )


class TrainingController:
    """Drives a Network through ``config.epochs`` epochs of per-sample SGD."""

    def __init__(self, network: Network, config: TrainingConfig):
        self._network: Optional[Network] = network
        self.config = config
        self.state = TrainingState.IDLE
        self.epochs_completed = 0
        self.history: List[float] = []
        self._callbacks: List[ProgressCallback] = []

    # ------------------------------------------------------------------
    # Resume
    # ------------------------------------------------------------------

    @classmethod
    def resume(
        cls,
        checkpoint: Checkpoint,
        epochs: int,
        checkpoint_path: Optional[str] = None,
        checkpoint_interval: Optional[int] = None,
        learning_rate: Optional[float] = None,
        verbose: bool = False
    ) -> 'TrainingController':
        """
        Continue training the network stored in ``checkpoint``.

        The new run's checkpoints describe this run only: ``epoch`` counts the
        epochs trained since resuming and ``total_epochs`` is ``epochs``.

        Args:
            checkpoint: Snapshot to continue from
            epochs: Epochs to train in this run
            checkpoint_path: Where to write the new checkpoint(s), if anywhere
            checkpoint_interval: Periodic checkpoint interval for this run
            learning_rate: Replace the stored learning rate
            verbose: Log progress

        Returns:
            TrainingController: An idle controller owning the restored network
        """
        network = checkpoint.network.copy()
        if learning_rate is not None:
            network.learning_rate = float(learning_rate)

        config = TrainingConfig(
            epochs=epochs,
            checkpoint_interval=checkpoint_interval,
            checkpoint_path=checkpoint_path,
            verbose=verbose,
            example_name=checkpoint.metadata.example,
        )
        logger.info(
            f"Resuming '{checkpoint.metadata.example}' from epoch "
            f"{checkpoint.metadata.epoch}/{checkpoint.metadata.total_epochs} "
            f"for {epochs} more epoch(s)"
        )
        return cls(network, config)

    @classmethod
    def resume_from_file(
        cls,
        path: str,
        epochs: int,
        **kwargs
    ) -> 'TrainingController':
        """Load a checkpoint file and :meth:`resume` from it."""
        return cls.resume(load_checkpoint(path), epochs, **kwargs)

    # ------------------------------------------------------------------
    # Callbacks / ownership
    # ------------------------------------------------------------------

    def add_callback(self, callback: ProgressCallback) -> None:
        """Register ``callback(epoch, loss, network)``, run after every epoch."""
        self._callbacks.append(callback)

    @property
    def network(self) -> Network:
        """The owned network (read access; train through the controller)."""
        if self._network is None:
            raise NetworkStateError("Network has already been released")
        return self._network

    def into_network(self) -> Network:
        """Hand the network back to the caller; the controller keeps nothing."""
        if self.state == TrainingState.TRAINING:
            raise NetworkStateError("Cannot release the network while training")
        network = self.network
        self._network = None
        return network

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]]
    ) -> List[float]:
        """
        Run ``config.epochs`` epochs over the samples in their given order.

        Args:
            inputs: One input vector per sample
            targets: One target vector per sample

        Returns:
            list: Mean squared error of every epoch

        Raises:
            DimensionMismatchError: If sample counts or vector sizes do not
                match the network
            CheckpointIOError: If a checkpoint cannot be written
            NetworkStateError: If the network was already released
        """
        network = self.network
        if self.state == TrainingState.TRAINING:
            raise NetworkStateError("Training is already in progress")
        samples = _prepare_samples(inputs, targets)

        config = self.config
        self.state = TrainingState.TRAINING
        self.epochs_completed = 0
        self.history = []
        logger.info(
            f"Training {network.layers} on {len(samples)} sample(s) "
            f"for {config.epochs} epoch(s), lr={network.learning_rate}"
        )

        try:
            for epoch in range(1, config.epochs + 1):
                loss = self._run_epoch(network, samples)
                self.epochs_completed = epoch
                self.history.append(loss)

                if config.verbose and should_report(epoch, config.epochs):
                    logger.info(
                        f"Epoch {epoch} of {config.epochs}: loss {loss:.6f}"
                    )

                self._notify(epoch, loss, network)

                if (
                    config.checkpoint_interval
                    and config.checkpoint_path
                    and epoch % config.checkpoint_interval == 0
                ):
                    self.checkpoint().save(config.checkpoint_path)

            if config.checkpoint_path:
                self.checkpoint().save(config.checkpoint_path)
        except Exception:
            self.state = TrainingState.IDLE
            raise

        self.state = TrainingState.COMPLETED
        final_loss = self.history[-1] if self.history else None
        logger.info(
            f"Training complete after {self.epochs_completed} epoch(s), "
            f"final loss {final_loss}"
        )
        return list(self.history)

    def checkpoint(self) -> Checkpoint:
        """Snapshot the network with this run's progress as metadata."""
        return Checkpoint.capture(
            self.network,
            epoch=self.epochs_completed,
            total_epochs=self.config.epochs,
            example=self.config.example_name or DEFAULT_EXAMPLE_NAME,
        )

    @staticmethod
    def _run_epoch(
        network: Network,
        samples: List[Tuple[Matrix, Matrix]]
    ) -> float:
        squared_error = 0.0
        for x, y in samples:
            outputs = network.feed_forward(x)
            squared_error += mean_squared_error(outputs, y)
            network.back_propagate(outputs, y)
        return squared_error / len(samples) if samples else 0.0

    def _notify(self, epoch: int, loss: float, network: Network) -> None:
        for callback in self._callbacks:
            try:
                callback(epoch, loss, network)
            except Exception as e:
                if self.config.propagate_callback_errors:
                    raise
                logger.exception(
                    f"Progress callback failed at epoch {epoch}: {e}"
                )


def mean_squared_error(outputs: Matrix, targets: Matrix) -> float:
    """Mean of ``(targets - outputs) ** 2`` over the output neurons."""
    diff = targets.subtract(outputs).data
    return sum(d * d for d in diff) / len(diff) if diff else 0.0


def _prepare_samples(
    inputs: Sequence[Sequence[float]],
    targets: Sequence[Sequence[float]]
) -> List[Tuple[Matrix, Matrix]]:
    if len(inputs) != len(targets):
        raise DimensionMismatchError(
            'train',
            expected=(len(inputs), 1),
            actual=(len(targets), 1),
            message=f"train: {len(inputs)} input(s) but {len(targets)} target(s)"
        )
    return [
        (Matrix.from_vector(x), Matrix.from_vector(y))
        for x, y in zip(inputs, targets)
    ]


def train_example(
    name: str,
    epochs: int,
    learning_rate: float,
    seed: Optional[int] = None,
    callbacks: Iterable[ProgressCallback] = (),
    activation: Activation = SIGMOID,
    verbose: bool = False
) -> Tuple[Network, List[float]]:
    """
    Train a fresh network on a built-in example.

    This is the synchronous entry point used by request handlers and the CLI.

    Args:
        name: Example name, e.g. ``'xor'``
        epochs: Epochs to train
        learning_rate: Learning rate of the new network
        seed: Seed for reproducible initialisation
        callbacks: Progress callbacks to register
        activation: Activation for the new network

    Returns:
        tuple: ``(trained network, per-epoch loss history)``

    Raises:
        UnknownExampleError: If ``name`` is not registered
    """
    example = get_example(name)
    network = Network(example.recommended_arch, activation, learning_rate, seed)
    controller = TrainingController(
        network,
        TrainingConfig(epochs=epochs, verbose=verbose, example_name=example.name)
    )
    for callback in callbacks:
        controller.add_callback(callback)
    history = controller.train(example.inputs, example.targets)
    return controller.into_network(), history
