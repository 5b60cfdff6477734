"""
Walkthrough of torch.autograd on tiny tensors.

Each step is a plain function returning the tensors it built so the values,
flags and gradients can be inspected (or tested) after the fact. ``run``
chains them in order and prints what PyTorch recorded.
"""
import logging
import sys
from collections import namedtuple

import torch

from . import config
from .autograd_graph import render_backward_graph

logger = logging.getLogger(__name__)

TrackedOps = namedtuple("TrackedOps", ["x", "y", "z", "out"])
RequiresGradToggle = namedtuple("RequiresGradToggle", ["a", "before", "after", "b"])
VectorJacobianProduct = namedtuple("VectorJacobianProduct", ["x", "y", "v"])


def grad_fn_name(tensor):
    """Name of the backward node attached to ``tensor``, ``None`` for leaves."""
    if tensor.grad_fn is None:
        return None
    return tensor.grad_fn.name()


def tracked_ops(device=None, dtype=None):
    device = config.resolve_device(device)
    dtype = config.resolve_dtype(dtype)
    x = torch.ones(2, 2, device=device, dtype=dtype, requires_grad=True)
    y = x + 2
    z = y * y * 3
    out = z.mean()
    logger.debug("tracked ops: y=%s z=%s out=%s", grad_fn_name(y), grad_fn_name(z), grad_fn_name(out))
    return TrackedOps(x, y, z, out)


def toggle_requires_grad(device=None, dtype=None, generator=None):
    """Arithmetic on an untracked tensor, then switch tracking on in place."""
    device = config.resolve_device(device)
    dtype = config.resolve_dtype(dtype)
    # sample on the cpu so a cpu generator works for every device
    a = torch.randn(2, 2, dtype=dtype, generator=generator).to(device)
    a = (a * 3) / (a - 1)
    before = a.requires_grad
    a.requires_grad_(True)
    after = a.requires_grad
    b = (a * a).sum()
    logger.debug("requires_grad toggled %s -> %s, b=%s", before, after, grad_fn_name(b))
    return RequiresGradToggle(a, before, after, b)


def backward_mean(ops):
    """Backpropagate the scalar ``out`` and return d(out)/dx."""
    ops.out.backward()
    logger.debug("x.grad after out.backward(): %s", ops.x.grad.tolist())
    return ops.x.grad


def vector_jacobian_product(values=(1.0, 2.0, 3.0), weights=(0.1, 1.0, 0.0001), device=None, dtype=None):
    """
    Backward through the non-scalar ``y = x * x`` weighted by ``v``.

    The leaf receives ``v^T J`` which for an elementwise square is ``2 * x * v``.
    ``y`` is not a leaf, so its gradient is only kept because of ``retain_grad``.
    """
    device = config.resolve_device(device)
    dtype = config.resolve_dtype(dtype)
    x = torch.tensor(values, device=device, dtype=dtype, requires_grad=True)
    y = x * x
    v = torch.tensor(weights, device=device, dtype=dtype)
    y.retain_grad()
    y.backward(v)
    logger.debug("vjp: x.grad=%s y.grad=%s", x.grad.tolist(), y.grad.tolist())
    return VectorJacobianProduct(x, y, v)


def run(device=None, dtype=None, seed=None, show_graph=False, stream=None):
    if stream is None:
        stream = sys.stdout

    def emit(*args):
        print(*args, file=stream)

    config.seed_everything(seed)
    logger.info("Starting playground (device=%s, dtype=%s, seed=%s)",
                config.resolve_device(device), config.resolve_dtype(dtype), seed)

    ops = tracked_ops(device, dtype)
    emit(ops.x)
    emit(ops.y)
    emit(grad_fn_name(ops.y))
    emit(ops.z)
    emit(grad_fn_name(ops.z))
    emit(ops.out)
    emit(grad_fn_name(ops.out))

    toggle = toggle_requires_grad(device, dtype)
    emit(toggle.before)
    emit(toggle.after)
    emit(grad_fn_name(toggle.b))

    if show_graph:
        emit(render_backward_graph(ops.out))

    x_grad = backward_mean(ops)
    emit(x_grad)

    # vector-Jacobian product
    vjp = vector_jacobian_product(device=device, dtype=dtype)
    emit("y =", vjp.y)
    emit("y.grad_fn.name() =", grad_fn_name(vjp.y))
    if show_graph:
        emit(render_backward_graph(vjp.y))
    emit("x.grad =", vjp.x.grad)
    emit("y.grad =", vjp.y.grad)

    logger.info("Playground finished")
    return {"tracked_ops": ops, "toggle": toggle, "vjp": vjp}
