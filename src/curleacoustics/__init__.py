"""
Far-field aeroacoustics of surface pressure forces (Curle's analogy).

The monitor samples the pressure on named boundary patches of a CFD mesh,
estimates the net force and its rate of change, and radiates them to fixed
observers as a compact dipole.
"""
