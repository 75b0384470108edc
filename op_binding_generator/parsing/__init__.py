"""Signature analysis of op functions."""
