"""
Numerical and physical constants for the DICE model.

Centralizes tolerances, conversion factors and penalty values so that the
model components, the optimization adapter and the tests agree on them.
"""

# Large negative number returned as objective for infeasible evaluation passes
# Used by the optimization adapter when a pass fails with an arithmetic error
# (e.g. a division by zero or a logarithm of a non-positive concentration)
NEG_BIGNUM = -1e30

# Small epsilon for numerical comparisons
# Used for comparing floats to unity (e.g., elasmu ≈ 1)
EPSILON = 1e-12

# Looser epsilon for gradient comparisons against finite differences
LOOSE_EPSILON = 1e-6

# Conversion factor from GtCO2 to GtC (molar mass ratio CO2/C)
CO2_PER_C = 3.666

# Default lower/upper bound for every decision variable (savings rate)
DECISION_LOWER_BOUND = 0.0
DECISION_UPPER_BOUND = 1.0
