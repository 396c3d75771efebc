"""
Core auction engine: configuration, errors, key binding and the
round/settlement state machine.
"""
