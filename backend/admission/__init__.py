"""Waitlist admission scoring: snapshot collection, turnover confirmation, Bayesian scoring."""
