"""pipectl kernel: domain models, ports and the reconciliation engine.

The kernel never talks to the network or the filesystem directly; drivers in
:mod:`pipectl.drivers` implement the ports it consumes.
"""
