"""
Backend Scripts Module

Available scripts:
    - seed_data.py: Creates the default departments and assignment rules
    
Usage:
    python -m scripts.seed_data
"""
