"""core/ -- shadowd protocol, failover, configuration and hashing for shadowc.

Layer rule: core/ is the kernel. It imports only stdlib + third-party
libraries and does NOT import from state/ or main.
"""
