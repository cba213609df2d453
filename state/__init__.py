"""state/ -- Local account state: shadow file, authorized_keys, passwd, system tools.

Layer rule: state/ may import from core/ (errors and models only).
It does NOT import from main. Nothing here talks to the network.
"""
