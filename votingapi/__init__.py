"""Voter, Poll and Votes microservices over a JSON document store."""

__version__ = "3.0.0"
