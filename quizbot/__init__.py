"""
Chat-channel quiz bot: CSV question banks, timed questions, live scoring.
"""
