"""Physical constants (SI units, mole basis)."""

GAS_CONSTANT = 8.314462618  # J/(mol·K)
R_GAS = GAS_CONSTANT

FARADAY = 96485.33212  # C/mol

ONE_ATM = 101325.0  # Pa
REFERENCE_PRESSURE = ONE_ATM
REFERENCE_TEMPERATURE = 298.15  # K

# Floor used before taking logarithms of coverages and activities.
TINY = 1.0e-300
