"""
Signal services: admission, activation, redemption and expiry.
"""
