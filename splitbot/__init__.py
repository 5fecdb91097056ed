"""Splitbot: splits a managed pull request into one review pull request per team."""

__version__ = "0.1.0"
