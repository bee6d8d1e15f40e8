"""
Constants used across the rotation engine.
"""

# Selection weights
WEIGHT_PER_MATCH = 100  # Weight added per match played (lower weight = picked first)

# Doubles
PLAYERS_PER_MATCH = 4
PLAYERS_PER_TEAM = 2

# Pairing score penalties per repeat
PARTNER_PENALTY = 4
OPPONENT_PENALTY = 1

# Randomized assignment search budgets
SINGLE_COURT_ATTEMPTS = 100
MULTI_COURT_ATTEMPTS = 500
MAX_ATTEMPTS = 1000
