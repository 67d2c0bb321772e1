import time
import numpy as np


def franke(x, y):
    """
    Franke's bivariate test function
    """
    term1 = 0.75 * np.exp(-((9 * x - 2) ** 2) / 4 - ((9 * y - 2) ** 2) / 4)
    term2 = 0.75 * np.exp(-((9 * x + 1) ** 2) / 49 - (9 * y + 1) / 10)
    term3 = 0.5 * np.exp(-((9 * x - 7) ** 2) / 4 - ((9 * y - 3) ** 2) / 4)
    term4 = -0.2 * np.exp(-((9 * x - 4) ** 2) - (9 * y - 7) ** 2)
    return term1 + term2 + term3 + term4


if __name__ == "__main__":

    import jax
    import rbf_models

    jax.config.update('jax_default_device', jax.devices('cpu')[0])  # Change to 'gpu' or 'tpu' for accelerators

    rng = np.random.default_rng(0)
    sites = rng.uniform(0.0, 1.0, size=(200, 2))
    values = franke(sites[:, 0], sites[:, 1])

    # test points on a regular grid
    num_points = 41
    x = np.linspace(0, 1, num=num_points)
    X, Y = np.meshgrid(x, x, indexing="xy")
    points = np.column_stack([X.ravel(), Y.ravel()])
    exact = franke(X, Y).ravel()

    for name, args in [("thin_plate_spline", 2), ("cubic", 3.0), ("multiquadric", (3.0, 0.5))]:
        print("building {} model... ".format(name), end="")
        start = time.time()
        model = rbf_models.interpolate_by_name(sites, values, name, args, poly_degree=1)
        print("took {:3.3f} sec".format(time.time() - start))

        approx = np.asarray(model.evaluate_batch(points))[:, 0]
        error = np.max(np.abs(approx - exact))
        print("  degree used: {}, max error: {:.3e}".format(model.poly_degree, error))

        grad = model.gradient(np.array([0.5, 0.5]), 0)
        print("  gradient at (0.5, 0.5): [{:.4f}, {:.4f}]".format(*grad))
