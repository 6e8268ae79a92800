"""
The PRE layer holds the inputs handed over by the flow solver: boundary
patch geometry and the boundary field samples of each time step.
"""
