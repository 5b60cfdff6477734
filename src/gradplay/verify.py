import logging

import numpy as np
import torch
from torch.autograd.functional import jacobian

logger = logging.getLogger(__name__)

# Perturbation for central differences, large enough for float32 inputs
EPSILON = 1e-3


def _to_numpy(tensor):
    if isinstance(tensor, torch.Tensor):
        tensor = tensor.detach().cpu()
        # numpy has no bfloat16
        if tensor.is_floating_point():
            tensor = tensor.to(torch.float64)
        return tensor.numpy()
    return np.asarray(tensor)


class GradientChecker:
    def __init__(self, tolerance=1e-6):
        self.passed_tests = 0
        self.failed_tests = 0
        self.tolerance = tolerance
        self.failures = []

    def assert_close(self, actual, expected, test_name, tolerance=None):
        """Compare two tensors (or arrays), recording the outcome instead of raising."""
        tol = self.tolerance if tolerance is None else tolerance
        try:
            if actual is None:
                raise AssertionError(f"No gradient for {test_name}.")
            np.testing.assert_allclose(
                _to_numpy(actual),
                _to_numpy(expected),
                rtol=tol,
                atol=tol,
                err_msg=f"Mismatch in values for {test_name}"
            )
            logger.info("passed: %s", test_name)
            self.passed_tests += 1
            return True
        except AssertionError as e:
            logger.warning("failed: %s: %s", test_name, e)
            self.failures.append((test_name, str(e)))
            self.failed_tests += 1
            return False

    @property
    def ok(self):
        return self.failed_tests == 0

    def summary(self):
        return self.passed_tests, self.failed_tests


def jacobian_vjp(fn, x, v):
    """Reference vector-Jacobian product ``v @ J`` built from the full Jacobian."""
    x = x.detach()
    jac = jacobian(fn, x)
    return v.reshape(-1) @ jac.reshape(v.numel(), x.numel())


def finite_difference_grad(fn, x, eps=EPSILON):
    """Central-difference gradient of the scalar function ``fn`` at ``x``."""
    x = x.detach().to(torch.float64).clone()
    grad = torch.zeros_like(x)
    flat_x = x.reshape(-1)
    flat_grad = grad.reshape(-1)
    for i in range(flat_x.numel()):
        orig = flat_x[i].item()
        flat_x[i] = orig + eps
        f_plus = float(fn(x))
        flat_x[i] = orig - eps
        f_minus = float(fn(x))
        flat_x[i] = orig
        flat_grad[i] = (f_plus - f_minus) / (2 * eps)
    return grad


def dtype_tolerance(dtype):
    """Comparison tolerance for gradients computed in ``dtype``."""
    return max(1e-5, 10 * torch.finfo(dtype).eps)


def check_playground(results, checker=None):
    """Check the gradients left behind by ``playground.run`` against closed forms."""
    ops = results["tracked_ops"]
    vjp = results["vjp"]
    if checker is None:
        checker = GradientChecker(tolerance=dtype_tolerance(ops.x.dtype))

    checker.assert_close(ops.x.grad, torch.full_like(ops.x, 4.5), "mean backward - x.grad")

    def mean_objective(x):
        return ((x + 2) * (x + 2) * 3).mean()

    checker.assert_close(ops.x.grad, finite_difference_grad(mean_objective, ops.x),
                         "mean backward - finite differences", tolerance=max(1e-4, checker.tolerance))

    x = vjp.x.detach()
    checker.assert_close(vjp.x.grad, 2 * x * vjp.v, "vector-Jacobian product - x.grad")
    checker.assert_close(vjp.y.grad, vjp.v, "vector-Jacobian product - y.grad")
    checker.assert_close(vjp.x.grad, jacobian_vjp(lambda t: t * t, x, vjp.v),
                         "vector-Jacobian product - full jacobian")

    passed, failed = checker.summary()
    logger.info("gradient checks: %d passed, %d failed", passed, failed)
    return checker
