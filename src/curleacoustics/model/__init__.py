"""
The MODEL layer contains result and recording persistence.
"""
