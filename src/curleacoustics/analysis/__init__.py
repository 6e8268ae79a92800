"""
Acoustic Analysis
=================
The numerical core: force integration, force-rate estimation, dipole
propagation and spectral analysis.

Note: This package should be pure Python/NumPy/SciPy and should NOT do any file I/O.
"""
