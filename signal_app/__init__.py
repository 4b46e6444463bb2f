"""
Signal App - Signal Admission, Activation and Redemption Engine

Hands out scarce, time-boxed signals to eligible users on a schedule, gates
their activation on recent round outcomes, and redeems each one exactly once
against the user's energy balance.
"""

__version__ = "0.1.0"
__author__ = "Signal App Team"
