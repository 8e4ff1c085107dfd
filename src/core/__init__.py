"""Core domain package for deadchat.

Core contains name rules, activity tracking, and reconciliation logic without
any HTML or host-specific code, keeping the detection logic portable.
"""
