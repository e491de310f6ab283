"""Test package for attention trials.

Engine tests run headlessly: a fake clock is advanced by hand and the timer
queue is polled with ``update()``, the way the pygame frame loop polls it. The
smoke tests use pygame's dummy video driver to avoid opening real windows. To
run these tests, execute ``pytest`` from the project root.
"""
