"""
Stock ledger and inventory analytics service
"""
