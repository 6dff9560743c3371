"""
visualize.py
~~~~~~~~~~~~

Render a network's architecture and weights with matplotlib.

Neurons are drawn as circles, one column per layer. Connections are blue for
positive and red for negative weights, with line width and opacity scaled by
magnitude.
"""

import base64
import logging
import os
from io import BytesIO
from typing import List, Optional, Tuple

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.patches import Circle

from .checkpoint import Checkpoint
from .network import Network

logger = logging.getLogger(__name__)

POSITIVE_COLOR = '#2563eb'
NEGATIVE_COLOR = '#dc2626'
NEURON_COLOR = '#f8fafc'
MAX_LINE_WIDTH = 4.0


def _neuron_positions(layers: List[int]) -> List[List[Tuple[float, float]]]:
    positions = []
    spacing_x = 1.0 / max(len(layers) - 1, 1)
    for layer_index, size in enumerate(layers):
        x = layer_index * spacing_x
        spacing_y = 1.0 / (size + 1)
        positions.append([(x, 1.0 - (i + 1) * spacing_y) for i in range(size)])
    return positions


def render_network(
    network: Network,
    width: int = 1200,
    height: int = 800,
    show_values: bool = False,
    title: Optional[str] = None
) -> plt.Figure:
    """
    Draw ``network`` onto a new figure.

    Args:
        network: Network to draw
        width: Canvas width in pixels
        height: Canvas height in pixels
        show_values: Annotate each connection with its weight
        title: Optional figure title

    Returns:
        matplotlib.figure.Figure: The figure; the caller closes it
    """
    dpi = 100
    fig, ax = plt.subplots(figsize=(width / dpi, height / dpi), dpi=dpi)
    ax.set_xlim(-0.08, 1.08)
    ax.set_ylim(0.0, 1.0)
    ax.set_aspect('auto')
    ax.axis('off')

    positions = _neuron_positions(network.layers)
    largest = max(
        (abs(v) for weight in network.weights for v in weight.data),
        default=1.0
    ) or 1.0
    radius = min(0.03, 0.35 / (max(network.layers) + 1))

    for layer_index, weight in enumerate(network.weights):
        for j in range(weight.rows):
            for i in range(weight.cols):
                value = weight[j, i]
                x0, y0 = positions[layer_index][i]
                x1, y1 = positions[layer_index + 1][j]
                strength = abs(value) / largest
                ax.plot(
                    [x0, x1], [y0, y1],
                    color=POSITIVE_COLOR if value >= 0 else NEGATIVE_COLOR,
                    linewidth=0.5 + strength * MAX_LINE_WIDTH,
                    alpha=0.25 + 0.75 * strength,
                    zorder=1
                )
                if show_values:
                    ax.text(
                        x0 + (x1 - x0) * 0.3, y0 + (y1 - y0) * 0.3,
                        f"{value:.2f}", fontsize=7, ha='center', va='center',
                        zorder=3
                    )

    for layer_index, layer in enumerate(positions):
        for neuron_index, (x, y) in enumerate(layer):
            ax.add_patch(Circle(
                (x, y), radius, facecolor=NEURON_COLOR, edgecolor='#334155',
                linewidth=1.5, zorder=2
            ))
            if layer_index > 0 and show_values:
                bias = network.biases[layer_index - 1][neuron_index, 0]
                ax.text(x, y, f"{bias:.2f}", fontsize=7, ha='center',
                        va='center', zorder=4)

    label = title or (
        f"Network {network.layers} - {network.activation.name}, "
        f"{network.parameter_count()} parameters"
    )
    ax.set_title(label)
    return fig


def render_to_bytes(network: Network, fmt: str = 'png', **kwargs) -> bytes:
    """Render ``network`` and return the encoded image."""
    fig = render_network(network, **kwargs)
    buffer = BytesIO()
    try:
        fig.savefig(buffer, format=fmt, bbox_inches='tight')
    finally:
        plt.close(fig)
    return buffer.getvalue()


def render_to_base64(network: Network, **kwargs) -> str:
    """Base64-encoded PNG, for embedding in JSON responses."""
    return base64.b64encode(render_to_bytes(network, 'png', **kwargs)).decode('utf-8')


def save_visualization(
    checkpoint: Checkpoint,
    output_path: str,
    width: int = 1200,
    height: int = 800,
    show_values: bool = False
) -> str:
    """
    Write a visualization of the checkpoint's network to ``output_path``.

    The image format follows the file extension (``.svg``, ``.png``, ...),
    defaulting to SVG.

    Returns:
        str: The path written
    """
    ext = os.path.splitext(output_path)[1].lstrip('.').lower() or 'svg'
    meta = checkpoint.metadata
    title = (
        f"{meta.example}: {checkpoint.network.layers}, "
        f"epoch {meta.epoch}/{meta.total_epochs}, lr {meta.learning_rate}"
    )
    data = render_to_bytes(
        checkpoint.network, ext, width=width, height=height,
        show_values=show_values, title=title
    )
    with open(output_path, 'wb') as handle:
        handle.write(data)

    logger.info(f"Saved {ext.upper()} visualization to {output_path}")
    return output_path
