"""Core ledger, authorization and auction state machine"""
